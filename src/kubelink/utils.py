"""Shared helpers: timestamp parsing, conditional base64 decoding, bracket JSON-path lookup."""

from __future__ import annotations

import base64
import binascii
from datetime import UTC, datetime
from typing import Any

from jsonpath_ng import parse as parse_json_path
from jsonpath_ng.exceptions import JSONPathError

from kubelink.exceptions import InvalidJsonPathError


def parse_iso_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse an ISO 8601 timestamp to a timezone-aware datetime.

    YAML already turns unquoted timestamps into datetime objects, so both forms are accepted.
    Naive values are taken as UTC. Returns None for empty or unparseable input.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip())
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def is_expired(expiry: str | datetime | None, now: datetime | None = None) -> bool:
    """Return True if ``expiry`` lies in the past.

    A missing expiry never expires. An expiry that cannot be parsed counts as expired.
    """
    if expiry is None or expiry == "":
        return False
    parsed = parse_iso_timestamp(expiry)
    if parsed is None:
        return True
    return parsed < (now or datetime.now(UTC))


def ensure_decoded(maybe_encoded: str) -> str:
    """Decode ``maybe_encoded`` if it is canonical base64 of UTF-8 text, else return it verbatim.

    Canonical means that decoding and re-encoding yields the exact input string.
    """
    try:
        raw = base64.b64decode(maybe_encoded, validate=True)
    except (binascii.Error, ValueError):
        return maybe_encoded
    if base64.b64encode(raw).decode("ascii") != maybe_encoded:
        return maybe_encoded
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return maybe_encoded


def get_json_path(document: Any, bracket_path: str) -> Any:
    """Evaluate a kubectl bracket expression such as ``{.foo.token}`` against ``document``.

    The outer braces are stripped and the remainder is rooted at ``$``. Returns the first match,
    or None when nothing matches.

    Raises:
        InvalidJsonPathError: The expression cannot be parsed.
    """
    expression = "$" + bracket_path.strip()[1:-1]
    try:
        compiled = parse_json_path(expression)
    except JSONPathError as exc:
        raise InvalidJsonPathError(bracket_path) from exc
    matches = compiled.find(document)
    if not matches:
        return None
    return matches[0].value
