"""Config file loading and auto-discovery for Tier-Guard.

Searches for ``tier-guard.yaml`` in the current directory and parent
directories, parses it, and resolves the policy path against the
config file's location.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from tier_guard.models import DowngradeStrategy

CONFIG_FILENAME = "tier-guard.yaml"


@dataclass(frozen=True)
class TierGuardConfig:
    """Parsed Tier-Guard project configuration."""

    config_path: Path | None = None
    policy: str | None = None
    default_strategy: DowngradeStrategy = DowngradeStrategy.KEEP_DEFAULT
    notify_user: bool = False


def find_config(start: Path | None = None) -> Path | None:
    """Walk from *start* (default ``cwd()``) up to the filesystem root.

    Returns the first ``tier-guard.yaml`` found, or ``None``.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(
    path: str | Path | None = None,
    *,
    auto_discover: bool = True,
) -> TierGuardConfig:
    """Load a Tier-Guard config file.

    Resolution order:

    1. Explicit *path* (error if it doesn't exist).
    2. Auto-discover by walking parent directories.
    3. Return an empty ``TierGuardConfig`` (all defaults).
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).resolve()
        if not config_path.is_file():
            msg = f"Config file not found: {config_path}"
            raise FileNotFoundError(msg)
    elif auto_discover:
        config_path = find_config()

    if config_path is None:
        return TierGuardConfig()

    return _parse_config(config_path)


def _parse_config(config_path: Path) -> TierGuardConfig:
    """Read and parse a YAML config file, resolving relative paths."""
    text = config_path.read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}

    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping in {config_path}, got {type(data).__name__}"
        raise ValueError(msg)

    policy = data.get("policy")
    if policy is not None:
        policy = str((config_path.parent / policy).resolve())

    raw_strategy = data.get("default_strategy", DowngradeStrategy.KEEP_DEFAULT.value)
    try:
        strategy = DowngradeStrategy(raw_strategy)
    except ValueError:
        allowed = ", ".join(s.value for s in DowngradeStrategy)
        msg = f"Invalid default_strategy {raw_strategy!r} in {config_path} (expected one of: {allowed})"
        raise ValueError(msg) from None

    return TierGuardConfig(
        config_path=config_path,
        policy=policy,
        default_strategy=strategy,
        notify_user=bool(data.get("notify_user", False)),
    )
