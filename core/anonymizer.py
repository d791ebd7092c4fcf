"""
core/anonymizer.py
------------------
Heuristic field classification and masking.

A field is *sensitive* when its name contains one of a fixed set of fragments
(email, name, phone, address, credentials, identity documents …) **and** its
semantic type is ``string``.  Typed columns such as an integer ``ssn`` are
left alone: the type gates the decision.

Sensitive values are masked by the first matching transform, in this order:

    email     →  "jo******@example.com"
    name      →  "J*** D**"
    phone     →  "***-***-4567"
    address   →  "*** **** Street"
    password/secret  →  "********"
    anything else    →  "s************a"

Design Decisions:
    * Pure functions; the classifier holds no state, so one instance can be
      shared across tables and tasks.
    * Masking dispatch is an ordered tuple of (pattern, transform) pairs so
      the tie-break order is explicit and testable.
    * Masks are defined over strings.  NULLs and non-string values are passed
      through untouched.
"""
from __future__ import annotations

import re
from typing import Callable

from models.schema import RowValue, SemanticType

MASK_CHAR = "*"
PLACEHOLDER_EMAIL = "anonymous@example.com"
PLACEHOLDER_PHONE = "***-***-****"
PLACEHOLDER_ADDRESS = "*** ***"
SECRET_MASK_LENGTH = 8

_SENSITIVE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(fragment, re.IGNORECASE)
    for fragment in (
        # Email
        "email", "mail", "e_mail",
        # Person names
        "name", "first_name", "last_name", "full_name", "username", "user_name",
        # Phone numbers
        "phone", "telephone", "mobile", "cell",
        # Postal addresses
        "address", "street", "city", "zip", "postal",
        # Identity documents and payment data
        "ssn", "social_security", "passport", "id_number", "credit_card", "card_number",
        # Credentials
        "password", "secret", "token", "key",
    )
)


# ---------------------------------------------------------------------------
# Masking transforms
# ---------------------------------------------------------------------------

def mask_email(value: str) -> str:
    local, sep, domain = value.partition("@")
    if not sep or not domain:
        return PLACEHOLDER_EMAIL
    if len(local) > 2:
        masked_local = local[:2] + MASK_CHAR * (len(local) - 2)
    else:
        masked_local = MASK_CHAR * 2
    return f"{masked_local}@{domain}"


def mask_name(value: str) -> str:
    def _word(word: str) -> str:
        if len(word) <= 2:
            return MASK_CHAR * len(word)
        return word[0] + MASK_CHAR * (len(word) - 1)

    return " ".join(_word(w) for w in value.split(" "))


def mask_phone(value: str) -> str:
    digits = re.sub(r"[^0-9]", "", value)
    if len(digits) < 4:
        return PLACEHOLDER_PHONE
    return f"***-***-{digits[-4:]}"


def mask_address(value: str) -> str:
    words = value.split(" ")
    if len(words) <= 2:
        return PLACEHOLDER_ADDRESS
    masked = [MASK_CHAR * len(w) for w in words[:2]]
    return " ".join(masked + words[2:])


def mask_secret(value: str) -> str:
    # Length is fixed so the mask leaks nothing about the original.
    return MASK_CHAR * SECRET_MASK_LENGTH


def mask_generic(value: str) -> str:
    if len(value) <= 3:
        return MASK_CHAR * len(value)
    return value[0] + MASK_CHAR * (len(value) - 2) + value[-1]


MaskFn = Callable[[str], str]

_MASKING_RULES: tuple[tuple[re.Pattern[str], MaskFn], ...] = (
    (re.compile("email", re.IGNORECASE), mask_email),
    (re.compile("name", re.IGNORECASE), mask_name),
    (re.compile("phone", re.IGNORECASE), mask_phone),
    (re.compile("address", re.IGNORECASE), mask_address),
    (re.compile("password|secret", re.IGNORECASE), mask_secret),
)


def select_mask(field_name: str) -> MaskFn:
    """Return the masking transform for *field_name* (first rule wins)."""
    for pattern, transform in _MASKING_RULES:
        if pattern.search(field_name):
            return transform
    return mask_generic


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------

class HeuristicAnonymizer:
    """
    Name/type based field classifier.

    Example::

        anon = HeuristicAnonymizer()
        anon.should_anonymize("email", SemanticType.STRING)      # True
        anon.should_anonymize("email", SemanticType.INTEGER)     # False
        anon.anonymize_field("phone", "555-123-4567", "string")  # "***-***-4567"
    """

    def is_sensitive_name(self, field_name: str) -> bool:
        return any(p.search(field_name) for p in _SENSITIVE_PATTERNS)

    def should_anonymize(self, field_name: str, semantic_type: SemanticType | str) -> bool:
        """True iff the name looks sensitive and the field is string-typed."""
        return semantic_type == SemanticType.STRING and self.is_sensitive_name(field_name)

    def anonymize_field(
        self,
        field_name: str,
        value: RowValue,
        semantic_type: SemanticType | str,
        force: bool = False,
    ) -> RowValue:
        """
        Mask *value* if the field is classified as sensitive.

        Args:
            field_name:     Column name; selects the masking transform.
            value:          The row value.  ``None`` is returned unchanged.
            semantic_type:  Normalised column type.
            force:          Treat the field as sensitive regardless of the
                            heuristics (explicit user request).

        Returns:
            The masked string, or *value* unchanged when the field is not
            classified or the value is not a string.
        """
        if value is None:
            return value
        if not (force or self.should_anonymize(field_name, semantic_type)):
            return value
        if not isinstance(value, str):
            return value
        return select_mask(field_name)(value)
