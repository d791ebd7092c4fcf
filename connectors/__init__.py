"""connectors/__init__.py"""
from connectors.base import BaseConnector
from connectors.mysql import MySQLConnector
from connectors.postgresql import PostgreSQLConnector
from connectors.sqlite import SQLiteConnector
from errors import ConfigurationError
from models.migration import DatabaseEndpoint, EngineKind

_CONNECTORS: dict[EngineKind, type[BaseConnector]] = {
    EngineKind.MYSQL: MySQLConnector,
    EngineKind.POSTGRESQL: PostgreSQLConnector,
    EngineKind.SQLITE: SQLiteConnector,
}


def create_connector(endpoint: DatabaseEndpoint, **kwargs) -> BaseConnector:
    """
    Build the connector for *endpoint*'s engine (not yet connected).

    Raises:
        ConfigurationError: If the engine kind has no connector.
    """
    try:
        connector_cls = _CONNECTORS[endpoint.engine]
    except KeyError:
        raise ConfigurationError(f"Unsupported database type: {endpoint.engine}") from None
    return connector_cls(endpoint, **kwargs)


__all__ = [
    "BaseConnector",
    "MySQLConnector",
    "PostgreSQLConnector",
    "SQLiteConnector",
    "create_connector",
]
