"""
Ordered field resolution.

Every canonical field is described by a ``FieldResolver``: a name, an
ordered tuple of named ``Accessor`` objects, a coercion and a default. The
first accessor whose value survives coercion and is usable (not None, not
an empty string, not an empty container) wins; otherwise the default is
returned. Accessors and coercions swallow shape errors, so resolution is
total over arbitrary input.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional, Union

_MISSING = object()
_TITLE_SEPARATORS = (" vs. ", " vs ", " v ", " - ", " – ")
_TITLE_KEYS = ("name", "title", "event_title", "fixture_title", "match_title")


def is_usable(value: Any) -> bool:
    if value is None or value is _MISSING:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, dict, set)):
        return bool(value)
    return True


# ── Accessors ───────────────────────────────────────────────────────────
@dataclass(frozen=True)
class Accessor:
    """A named lookup on a raw record. ``fn`` may raise; ``get`` never does."""

    name: str
    fn: Callable[[Any], Any]

    def get(self, record: Any) -> Any:
        try:
            return self.fn(record)
        except (KeyError, IndexError, TypeError, ValueError, AttributeError):
            return None


def _step(current: Any, part: str) -> Any:
    if isinstance(current, Mapping):
        return current.get(part, _MISSING)
    if isinstance(current, (list, tuple)):
        try:
            return current[int(part)]
        except (ValueError, IndexError):
            return _MISSING
    return _MISSING


def dig(record: Any, dotted: str) -> Any:
    """Follow a dotted path (``homeTeam.name``, ``participants.0.name``, ``goals.-1``)."""
    current = record
    for part in dotted.split("."):
        current = _step(current, part)
        if current is _MISSING:
            return None
    return current


def path(dotted: str) -> Accessor:
    return Accessor(dotted, lambda record: dig(record, dotted))


def _matches(value: Any, expected: Any) -> bool:
    candidates = expected if isinstance(expected, tuple) else (expected,)
    for candidate in candidates:
        if isinstance(candidate, str) and isinstance(value, str):
            if value.strip().lower() == candidate.lower():
                return True
        elif value == candidate:
            return True
    return False


def find(
    list_path: str,
    where: Mapping[str, Any],
    then: Union[str, Accessor, None] = None,
) -> Accessor:
    """
    Search the list at ``list_path`` for the first element whose dotted
    ``where`` paths all equal the expected values (a tuple means any of),
    then apply ``then`` to it.
    """
    then_accessor = path(then) if isinstance(then, str) else then
    label = ",".join(f"{k}={v}" for k, v in where.items())
    name = f"{list_path}[{label}]" + (f".{then_accessor.name}" if then_accessor else "")

    def _find(record: Any) -> Any:
        items = record if list_path == "" else dig(record, list_path)
        if not isinstance(items, (list, tuple)):
            return None
        for item in items:
            if all(_matches(dig(item, k), v) for k, v in where.items()):
                return then_accessor.get(item) if then_accessor else item
        return None

    return Accessor(name, _find)


def split_title(title: Any) -> Optional[tuple[str, str]]:
    if not isinstance(title, str):
        return None
    for sep in _TITLE_SEPARATORS:
        if sep in title:
            left, _, right = title.partition(sep)
            if left.strip() and right.strip():
                return left.strip(), right.strip()
    return None


def title_part(index: int, keys: tuple[str, ...] = _TITLE_KEYS) -> Accessor:
    """Home (0) or away (1) side parsed from a combined ``"A vs B"`` / ``"A - B"`` title."""

    def _title(record: Any) -> Any:
        if not isinstance(record, Mapping):
            return None
        for key in keys:
            parts = split_title(record.get(key))
            if parts:
                return parts[index]
        return None

    return Accessor(f"title[{index}]", _title)


def whole(fn: Callable[[Any], Any], name: str) -> Accessor:
    """Accessor computed from the whole record."""
    return Accessor(name, fn)


# ── Coercions (return None when the value cannot be used) ───────────────
def to_str(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, Mapping):
        for key in ("name", "displayName", "fullName", "shortName", "title", "teamName", "TeamName"):
            inner = value.get(key)
            if isinstance(inner, (str, int)) and str(inner).strip():
                return str(inner).strip()
    return None


def to_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value == value else None
    if isinstance(value, str):
        text = value.strip()
        match = re.match(r"^[+-]?\d+", text)
        return int(match.group(0)) if match else None
    return None


def to_datetime(value: Any) -> Optional[datetime]:
    """ISO-8601 strings, ``YYYY-MM-DD HH:MM:SS`` (UTC) or epoch seconds/millis."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > 10**11 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.isdigit():
            return to_datetime(int(text))
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def identity(value: Any) -> Any:
    return value


# ── Resolver ────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class FieldResolver:
    """Ordered accessors for one canonical field."""

    name: str
    accessors: tuple[Accessor, ...]
    default: Any = None
    coerce: Callable[[Any], Any] = identity

    def resolve(self, record: Any) -> Any:
        for accessor in self.accessors:
            value = accessor.get(record)
            if not is_usable(value):
                continue
            try:
                coerced = self.coerce(value)
            except (TypeError, ValueError, ArithmeticError):
                continue
            if is_usable(coerced):
                return coerced
        return self.default


def resolve_all(resolvers: Mapping[str, FieldResolver], record: Any) -> dict[str, Any]:
    return {name: resolver.resolve(record) for name, resolver in resolvers.items()}
