"""Resource snapshot and account loaders.

Loads and validates ResourceSnapshot and UserAccount documents from
YAML or JSON files (JSON is valid YAML). Used by the CLI and by tests;
applications usually build these models directly from their own data
access layer.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ValidationError

from tier_guard.models import ResourceSnapshot, UserAccount


class SnapshotError(Exception):
    """Raised when a snapshot or account file is invalid or cannot be loaded."""


def _read_mapping(path: Path, kind: str) -> dict[str, Any]:
    if not path.exists():
        raise SnapshotError(f"{kind.capitalize()} file not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise SnapshotError(f"Invalid YAML in {path}: {e}") from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise SnapshotError(f"{kind.capitalize()} file must contain a mapping: {path}")
    return raw


def _validate(model: type[BaseModel], raw: dict[str, Any], path: Path, kind: str) -> Any:
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise SnapshotError(f"Invalid {kind} in {path}: {e}") from e


def load_snapshot(path: str | Path) -> ResourceSnapshot:
    """Load a resource snapshot.

    The file holds one list per resource type (``pages``, ``links``,
    ``short_links``, ``sub_accounts``, ``api_keys``; camelCase keys are
    accepted too). Missing types are treated as empty.

    Raises:
        SnapshotError: If the file cannot be read, parsed, or validated.
    """
    path = Path(path)
    raw = _read_mapping(path, "snapshot")
    return _validate(ResourceSnapshot, raw, path, "snapshot")


def load_account(path: str | Path) -> UserAccount:
    """Load a user account (roles, permissions and relationships).

    Raises:
        SnapshotError: If the file cannot be read, parsed, or validated.
    """
    path = Path(path)
    raw = _read_mapping(path, "account")
    if not raw:
        raise SnapshotError(f"Account file is empty: {path}")
    return _validate(UserAccount, raw, path, "account")
