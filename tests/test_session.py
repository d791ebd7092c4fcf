"""
tests/test_session.py
---------------------
Unit tests for core/session.py with injected in-memory connectors.
"""
from __future__ import annotations

import pytest

from conftest import USER_FIELDS, MemoryConnector, make_user_rows
from core.session import MigrationSession
from errors import DatabaseConnectionError, NotConnectedError, SchemaError
from models.migration import DatabaseEndpoint, EngineKind, MigrationSpec, TableMigrationSpec


def _spec(tables=None, **kwargs) -> MigrationSpec:
    return MigrationSpec(
        source=DatabaseEndpoint(engine=EngineKind.SQLITE, file="source.db"),
        destination=DatabaseEndpoint(engine=EngineKind.SQLITE, file="dest.db"),
        tables=list(tables or []),
        **kwargs,
    )


def _factory(source: MemoryConnector, destination: MemoryConnector, calls: list | None = None):
    def build(endpoint: DatabaseEndpoint, **kwargs) -> MemoryConnector:
        if calls is not None:
            calls.append((endpoint.file, kwargs))
        return source if endpoint.file == "source.db" else destination
    return build


class TestConnection:
    @pytest.mark.asyncio
    async def test_context_manager_connects_and_closes(self, source, destination) -> None:
        session = MigrationSession(_spec(), connector_factory=_factory(source, destination))
        async with session:
            assert session.is_connected
            assert source.is_connected and destination.is_connected
        assert not session.is_connected
        assert source.disconnect_calls == 1
        assert destination.disconnect_calls == 1

    @pytest.mark.asyncio
    async def test_destination_failure_closes_source(self, source) -> None:
        destination = MemoryConnector(fail_on={"connect"})
        session = MigrationSession(_spec(), connector_factory=_factory(source, destination))
        with pytest.raises(DatabaseConnectionError):
            await session.connect()
        assert not source.is_connected
        assert not session.is_connected

    @pytest.mark.asyncio
    async def test_source_opened_read_only(self, source, destination) -> None:
        calls: list = []
        async with MigrationSession(_spec(), connector_factory=_factory(source, destination, calls)):
            pass
        assert calls == [("source.db", {"read_only": True}), ("dest.db", {})]

    @pytest.mark.asyncio
    async def test_analyze_needs_only_the_source(self, source) -> None:
        destination = MemoryConnector(fail_on={"connect"})
        session = MigrationSession(_spec(), connector_factory=_factory(source, destination))
        await session.connect(source_only=True)
        try:
            assert not session.is_connected
            reports = await session.analyze(["users"])
            assert await session.list_source_tables() == ["users", "orders"]
            with pytest.raises(NotConnectedError):
                await session.migrate()
        finally:
            await session.disconnect()
        assert reports[0].name == "users"
        assert not destination.is_connected
        assert source.disconnect_calls == 1

    @pytest.mark.asyncio
    async def test_operations_require_connection(self, source, destination) -> None:
        session = MigrationSession(_spec(), connector_factory=_factory(source, destination))
        with pytest.raises(NotConnectedError):
            await session.list_source_tables()


class TestOperations:
    @pytest.mark.asyncio
    async def test_migrate_configured_tables(self, source, destination) -> None:
        spec = _spec([TableMigrationSpec("users", exclude_fields={"age"})])
        async with MigrationSession(spec, connector_factory=_factory(source, destination)) as s:
            results = await s.migrate()
        assert [r.table_name for r in results] == ["users"]
        assert "orders" not in destination.rows
        assert "age" not in destination.rows["users"][0]

    @pytest.mark.asyncio
    async def test_migrate_discovers_tables(self, source, destination) -> None:
        spec = _spec(exclude_fields=frozenset({"notes"}))
        async with MigrationSession(spec, connector_factory=_factory(source, destination)) as s:
            results = await s.migrate()
        assert sorted(r.table_name for r in results) == ["orders", "users"]
        assert "notes" not in destination.rows["users"][0]

    @pytest.mark.asyncio
    async def test_migrate_stops_on_first_failure(self, source, destination) -> None:
        spec = _spec([TableMigrationSpec("ghosts"), TableMigrationSpec("users")])
        async with MigrationSession(spec, connector_factory=_factory(source, destination)) as s:
            results = await s.migrate()
        assert len(results) == 1
        assert not results[0].success

    @pytest.mark.asyncio
    async def test_migrate_table(self, source, destination) -> None:
        async with MigrationSession(_spec(), connector_factory=_factory(source, destination)) as s:
            result = await s.migrate_table("users", anonymize_fields=["notes"], batch_size=2)
        assert result.rows_processed == 5
        assert destination.rows["users"][0]["notes"] == "s*******e"

    @pytest.mark.asyncio
    async def test_migrate_table_raises(self, source, destination) -> None:
        async with MigrationSession(_spec(), connector_factory=_factory(source, destination)) as s:
            with pytest.raises(SchemaError):
                await s.migrate_table("ghosts")

    @pytest.mark.asyncio
    async def test_describe_and_analyze(self, destination) -> None:
        source = MemoryConnector(schemas={"users": USER_FIELDS}, rows={"users": make_user_rows(2)})
        async with MigrationSession(_spec(), connector_factory=_factory(source, destination)) as s:
            table = await s.describe_source_table("users")
            reports = await s.analyze()
        assert table.row_count == 2
        assert reports[0].sensitive_count == 4


class TestFromUrls:
    def test_builds_spec(self) -> None:
        session = MigrationSession.from_urls(
            "mysql://u:p@h/app", "copy.db", [TableMigrationSpec("users")]
        )
        assert session.spec.source.engine == EngineKind.MYSQL
        assert session.spec.destination.file == "copy.db"
        assert session.spec.tables[0].name == "users"
