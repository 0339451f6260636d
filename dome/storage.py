"""Durable per-player profile storage backed by one TOML document per identity.

All disk I/O for profiles lives behind :class:`ProfileStore`.  Records are
written to a temporary file in the destination directory, flushed and fsynced,
and then moved over the canonical path with :func:`os.replace`, so a crash at
any point leaves either the previous or the new complete record on disk.
Reads never raise to callers: a missing or unreadable record yields a fresh
profile and the problem is logged.
"""

from __future__ import annotations

import logging
import math
import os
import re
import tempfile
import threading
import time
import weakref
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping

import tomllib

from .models import ModelValidationError
from .models.profiles import PlayerProfile

log = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    """Base class for failures reading or writing durable state."""


class ProfileReadError(PersistenceError):
    """The stored record exists but could not be read from disk."""


class CorruptProfileError(PersistenceError):
    """The stored record was read but does not describe a valid profile."""


class ProfileWriteError(PersistenceError):
    """The record could not be staged or moved into place."""


def _is_site_packages(path: Path) -> bool:
    """Return ``True`` if ``path`` is inside a site/dist-packages directory."""

    normalized = {part.lower() for part in path.parts}
    return "site-packages" in normalized or "dist-packages" in normalized


def resolve_storage_root(package_root: Path) -> Path:
    """Determine where mutable data should be stored.

    Data lives alongside the source tree when the project runs from a
    checkout.  An explicit ``DOME_DATA_ROOT`` wins; an installed (site-packages)
    or read-only package falls back to the working directory.
    """

    override = os.getenv("DOME_DATA_ROOT")
    if override:
        return Path(override).expanduser().resolve()

    if _is_site_packages(package_root) or not os.access(package_root, os.W_OK):
        return Path.cwd().resolve()

    return package_root.resolve()


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

_BARE_KEY = re.compile(r"^[A-Za-z0-9_-]+$")


def _normalize_for_toml(value: Any) -> Any:
    if isinstance(value, MappingProxyType):
        value = dict(value)
    if isinstance(value, Mapping):
        normalized: Dict[str, Any] = {}
        for key, item in value.items():
            if item is None:
                continue
            normalized[str(key)] = _normalize_for_toml(item)
        return normalized
    if isinstance(value, (set, frozenset)):
        items = [_normalize_for_toml(item) for item in value if item is not None]
        return sorted(items, key=lambda item: repr(item))
    if isinstance(value, (list, tuple)):
        return [_normalize_for_toml(item) for item in value if item is not None]
    if isinstance(value, Enum):
        return value.value if isinstance(value.value, (str, int)) else str(value.value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (str, int, bool)):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            return 0.0
        return value
    if isinstance(value, bytes):
        return value.decode("utf8", "replace")
    return str(value)


def _quote_string(value: str) -> str:
    replacements = {
        "\\": "\\\\",
        '"': '\\"',
        "\b": "\\b",
        "\t": "\\t",
        "\n": "\\n",
        "\f": "\\f",
        "\r": "\\r",
    }

    def _escape_char(char: str) -> str:
        if char in replacements:
            return replacements[char]
        code = ord(char)
        if 0x20 <= code <= 0x7E:
            return char
        if code > 0xFFFF:
            return f"\\U{code:08x}"
        return f"\\u{code:04x}"

    return '"' + "".join(_escape_char(char) for char in value) + '"'


def _format_key(key: str) -> str:
    return key if _BARE_KEY.match(key) else _quote_string(key)


def _format_toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        # repr is the shortest text that parses back to the same float.
        return repr(value)
    if isinstance(value, str):
        return _quote_string(value)
    if isinstance(value, list):
        if value and all(isinstance(item, Mapping) for item in value):
            raise TypeError("Nested table arrays handled separately")
        return "[" + ", ".join(_format_toml_value(item) for item in value) + "]"
    if isinstance(value, Mapping):
        raise TypeError("Mappings must be serialised via table handlers")
    return _quote_string(str(value))


def _serialize_table(
    data: Mapping[str, Any],
    *,
    parent: tuple[str, ...] | None = None,
    output: list[str],
) -> None:
    parent = parent or ()
    simple_items: list[tuple[str, Any]] = []
    tables: list[tuple[str, Mapping[str, Any]]] = []
    array_tables: list[tuple[str, list[Mapping[str, Any]]]] = []

    for key, value in data.items():
        if isinstance(value, Mapping):
            tables.append((key, value))
        elif isinstance(value, list) and value and all(
            isinstance(item, Mapping) for item in value
        ):
            array_tables.append((key, value))
        else:
            simple_items.append((key, value))

    simple_items.sort(key=lambda item: item[0])
    tables.sort(key=lambda item: item[0])

    for key, value in simple_items:
        output.append(f"{_format_key(key)} = {_format_toml_value(value)}")

    for key, value in tables:
        header = ".".join(_format_key(part) for part in (*parent, key))
        if output and output[-1] != "":
            output.append("")
        output.append(f"[{header}]")
        _serialize_table(value, parent=(*parent, key), output=output)

    # Array order is significant (catalog ordering, active loadout first).
    for key, items in array_tables:
        header = ".".join(_format_key(part) for part in (*parent, key))
        for item in items:
            if output and output[-1] != "":
                output.append("")
            output.append(f"[[{header}]]")
            _serialize_table(item, parent=(*parent, key), output=output)


def toml_dumps(data: Mapping[str, Any]) -> str:
    normalized = _normalize_for_toml(data)
    if not isinstance(normalized, Mapping):
        raise TypeError("Top level TOML document must be a mapping")
    output: list[str] = []
    _serialize_table(normalized, output=output)
    return "\n".join(output) + "\n"


def load_toml(path: Path) -> dict[str, Any]:
    """Parse ``path``; missing files and syntax errors propagate to the caller."""

    with path.open("rb") as handle:
        return tomllib.load(handle)


def write_toml(path: Path, payload: Mapping[str, Any]) -> None:
    """Atomically replace ``path`` with the TOML rendering of ``payload``."""

    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path: Path | None = None
    data = toml_dumps(payload)
    try:
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf8", dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
        ) as handle:
            temp_path = Path(handle.name)
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
        temp_path = None
    finally:
        if temp_path is not None:
            try:
                temp_path.unlink()
            except FileNotFoundError:
                pass


# ---------------------------------------------------------------------------
# Profile store
# ---------------------------------------------------------------------------


class ProfileStore:
    """Load and save one :class:`PlayerProfile` record per player identity."""

    def __init__(self, root: Path, *, starting_tokens: int = 500) -> None:
        self._root = Path(root)
        self._directory = self._root / "profiles"
        self.starting_tokens = max(0, int(starting_tokens))
        self._locks: weakref.WeakValueDictionary[int, threading.Lock] = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, identity: int) -> Path:
        return self._directory / f"{int(identity)}.toml"

    def lock_for(self, identity: int) -> threading.Lock:
        # Entries live only while some caller still holds the lock object.
        with self._locks_guard:
            lock = self._locks.get(int(identity))
            if lock is None:
                lock = threading.Lock()
                self._locks[int(identity)] = lock
            return lock

    def exists(self, identity: int) -> bool:
        return self.path_for(identity).is_file()

    def fresh(self, identity: int, *, now: float | None = None) -> PlayerProfile:
        return PlayerProfile.fresh(identity, self.starting_tokens, now=now)

    def read(self, identity: int) -> PlayerProfile:
        """Return the stored profile, raising :class:`PersistenceError` subclasses.

        :class:`FileNotFoundError` is propagated untouched so callers can tell
        "no record" apart from a damaged one.
        """

        path = self.path_for(identity)
        try:
            payload = load_toml(path)
        except FileNotFoundError:
            raise
        except tomllib.TOMLDecodeError as exc:
            raise CorruptProfileError(f"{path.name}: {exc}") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise ProfileReadError(f"{path.name}: {exc}") from exc

        try:
            profile = PlayerProfile.from_mapping(payload)
        except (ModelValidationError, TypeError, ValueError) as exc:
            raise CorruptProfileError(f"{path.name}: {exc}") from exc
        if profile.identity != int(identity):
            raise CorruptProfileError(
                f"{path.name}: record belongs to identity {profile.identity}"
            )
        return profile

    def load(self, identity: int, *, now: float | None = None) -> PlayerProfile:
        """Return the stored profile, or a fresh one if none can be used."""

        try:
            profile = self.read(identity)
        except FileNotFoundError:
            log.debug("No stored profile for %s; creating a fresh one", identity)
            return self.fresh(identity, now=now)
        except CorruptProfileError as exc:
            log.error("Discarding corrupt profile for %s: %s", identity, exc)
            return self.fresh(identity, now=now)
        except ProfileReadError as exc:
            log.error("Failed to read profile for %s: %s", identity, exc)
            return self.fresh(identity, now=now)
        log.debug("Loaded profile for %s", identity)
        return profile

    def write(self, profile: PlayerProfile, *, now: float | None = None) -> None:
        """Persist ``profile``, raising :class:`ProfileWriteError` on failure."""

        with self.lock_for(profile.identity):
            profile.last_updated = time.time() if now is None else now
            path = self.path_for(profile.identity)
            try:
                write_toml(path, profile.to_mapping())
            except OSError as exc:
                raise ProfileWriteError(f"{path.name}: {exc}") from exc

    def save(self, profile: PlayerProfile, *, now: float | None = None) -> bool:
        """Persist ``profile``; failures are logged and reported as ``False``.

        A failed save leaves the previous record on disk and the in-memory
        profile as the only copy of the newest state.
        """

        try:
            self.write(profile, now=now)
        except ProfileWriteError:
            log.exception("Failed to save profile for %s", profile.identity)
            return False
        log.debug("Saved profile for %s", profile.identity)
        return True

    def delete(self, identity: int) -> None:
        with self.lock_for(identity):
            try:
                self.path_for(identity).unlink()
            except FileNotFoundError:
                return


__all__ = [
    "CorruptProfileError",
    "PersistenceError",
    "ProfileReadError",
    "ProfileStore",
    "ProfileWriteError",
    "load_toml",
    "resolve_storage_root",
    "toml_dumps",
    "write_toml",
]
