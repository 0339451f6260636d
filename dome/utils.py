"""Formatting helpers and an administrative CLI for stored dome data."""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, SupportsInt

import tomllib

from .catalog import ARMOR_FILE, WEAPONS_FILE, CatalogLoadError, parse_armor_document, parse_weapons_document
from .models import ModelValidationError
from .storage import CorruptProfileError, ProfileReadError, ProfileStore, load_toml, resolve_storage_root

PROJECT_BASE = Path(__file__).resolve().parent.parent


def _default_storage_root() -> Path:
    return resolve_storage_root(PROJECT_BASE)


def format_number(value: SupportsInt) -> str:
    """Return ``value`` with ``'`` as the thousands separator."""

    integer = int(value)
    sign = "-" if integer < 0 else ""
    formatted = f"{abs(integer):,}".replace(",", "'")
    return f"{sign}{formatted}"


def format_duration(seconds: float) -> str:
    """Render a cooldown such as ``12.3`` as ``"13s"`` or ``"1m 05s"``."""

    total = max(0, int(-(-float(seconds) // 1)))
    minutes, secs = divmod(total, 60)
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"


def kill_death_ratio(kills: int, deaths: int) -> float:
    if deaths <= 0:
        return float(kills)
    return round(kills / deaths, 2)


@dataclass(slots=True)
class ValidationIssue:
    """Represents a validation result for a single stored document."""

    level: str
    path: Path
    message: str

    def display(self) -> str:
        return f"[{self.level.upper()}] {self.path}: {self.message}"


def _profile_store(args: argparse.Namespace) -> ProfileStore:
    root = Path(args.data_root).expanduser() if args.data_root else _default_storage_root()
    return ProfileStore(root)


def _catalog_dir(args: argparse.Namespace, store: ProfileStore) -> Path:
    if args.catalog_dir:
        return Path(args.catalog_dir).expanduser()
    return store.directory.parent / "catalog"


def _iter_profile_identities(store: ProfileStore) -> list[int]:
    if not store.directory.is_dir():
        return []
    identities: list[int] = []
    for path in sorted(store.directory.glob("*.toml")):
        if path.stem.isdigit():
            identities.append(int(path.stem))
    return identities


def validate_catalog_dir(directory: Path) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    parsers = ((WEAPONS_FILE, parse_weapons_document), (ARMOR_FILE, parse_armor_document))
    for name, parser in parsers:
        path = directory / name
        if not path.exists():
            issues.append(ValidationIssue("warning", path, "missing; built-in defaults apply"))
            continue
        try:
            parser(load_toml(path))
        except tomllib.TOMLDecodeError as exc:
            issues.append(ValidationIssue("error", path, f"invalid TOML: {exc}"))
        except (CatalogLoadError, ModelValidationError, ValueError) as exc:
            issues.append(ValidationIssue("error", path, str(exc)))
    return issues


def validate_profiles(store: ProfileStore) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for identity in _iter_profile_identities(store):
        try:
            store.read(identity)
        except (CorruptProfileError, ProfileReadError) as exc:
            issues.append(ValidationIssue("error", store.path_for(identity), str(exc)))
    return issues


def _command_list(args: argparse.Namespace) -> int:
    store = _profile_store(args)
    identities = _iter_profile_identities(store)
    if not identities:
        print("No stored profiles found.")
        return 0

    print(f"Profiles: {store.directory}\n")
    for identity in identities:
        try:
            profile = store.read(identity)
        except (CorruptProfileError, ProfileReadError) as exc:
            print(f"{identity}: unreadable ({exc})")
            continue
        print(
            f"{identity}: {format_number(profile.token_balance)} tokens, "
            f"{len(profile.owned_weapons)} weapon(s), {len(profile.owned_skins)} skin(s), "
            f"{len(profile.owned_armor)} armor piece(s)"
        )
    return 0


def _command_validate(args: argparse.Namespace) -> int:
    store = _profile_store(args)
    issues = validate_catalog_dir(_catalog_dir(args, store)) + validate_profiles(store)
    if not issues:
        print("No issues found.")
        return 0
    for issue in issues:
        print(issue.display())
    return 1 if any(issue.level == "error" for issue in issues) else 0


def _command_delete_player(args: argparse.Namespace) -> int:
    store = _profile_store(args)
    identity = int(args.user)
    path = store.path_for(identity)
    if not path.exists():
        print(f"No profile found for player {identity}.", file=sys.stderr)
        return 1

    if not args.force:
        response = input(
            f"Delete {path}? This cannot be undone. Type 'yes' to confirm: "
        ).strip()
        if response.lower() != "yes":
            print("Aborted.")
            return 3

    store.delete(identity)
    print(f"Deleted profile: {path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Administrative utilities for dome data.")
    parser.add_argument("--data-root", help="Directory holding profiles/ (default: storage root)")
    parser.add_argument("--catalog-dir", help="Directory holding weapons.toml and armor.toml")

    subparsers = parser.add_subparsers(dest="command")

    list_parser = subparsers.add_parser("list", help="Show stored player profiles")
    list_parser.set_defaults(func=_command_list)

    validate_parser = subparsers.add_parser(
        "validate",
        aliases=["lint"],
        help="Parse catalog documents and profiles and report problems",
    )
    validate_parser.set_defaults(func=_command_validate)

    delete_parser = subparsers.add_parser(
        "delete-player",
        help="Remove a player's profile so they start fresh on next connect",
    )
    delete_parser.add_argument("--user", required=True, type=int, help="Player identity")
    delete_parser.add_argument(
        "--force",
        action="store_true",
        help="Skip the confirmation prompt",
    )
    delete_parser.set_defaults(func=_command_delete_player)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "command", None):
        parser.print_help()
        return 0
    return args.func(args)


__all__ = [
    "ValidationIssue",
    "build_parser",
    "format_duration",
    "format_number",
    "kill_death_ratio",
    "main",
    "validate_catalog_dir",
    "validate_profiles",
]


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
