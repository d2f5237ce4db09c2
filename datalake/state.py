"""
Persisted deployment state.

The random bucket-name suffix is generated exactly once per deployment and stored
in a small JSON file next to the rest of the deployment configuration. Every run
(plan, apply, CDK synth, destroy) reads it back so bucket names never change.

File shape::

    {"suffix": "a1b2c3d4", "created_at_utc": "2026-01-01T00:00:00Z", "previous_suffixes": []}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from datalake.errors import InvalidConfiguration
from datalake.naming import generate_suffix, validate_suffix

logger = logging.getLogger("datalake.state")


@dataclass(frozen=True)
class DeploymentState:
    suffix: str
    created_at_utc: str
    previous_suffixes: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "suffix": self.suffix,
            "created_at_utc": self.created_at_utc,
            "previous_suffixes": list(self.previous_suffixes),
        }


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def load_state(path: Path) -> Optional[DeploymentState]:
    """
    Read the state file.

    Returns:
        The stored state, or None when the file does not exist

    Raises:
        InvalidConfiguration: If the file exists but is unreadable or malformed
    """
    if not path.is_file():
        return None
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise InvalidConfiguration(f"cannot read deployment state {path}: {e}") from e
    if not isinstance(raw, dict) or "suffix" not in raw:
        raise InvalidConfiguration(f"deployment state {path} has no suffix")
    return DeploymentState(
        suffix=validate_suffix(raw["suffix"]),
        created_at_utc=str(raw.get("created_at_utc") or ""),
        previous_suffixes=[str(s) for s in raw.get("previous_suffixes") or []],
    )


def save_state(path: Path, state: DeploymentState) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(state.to_dict(), indent=2) + "\n", encoding="utf-8")
    tmp.replace(path)


def load_or_create_suffix(path: Path, *, generate=generate_suffix) -> str:
    """
    Return the deployment suffix, generating and persisting it on first use.
    """
    state = load_state(path)
    if state is not None:
        return state.suffix

    state = DeploymentState(suffix=validate_suffix(generate()), created_at_utc=_utc_now())
    save_state(path, state)
    logger.info("generated new deployment suffix %s (state: %s)", state.suffix, path)
    return state.suffix


def rotate_suffix(path: Path, *, generate=generate_suffix) -> DeploymentState:
    """
    Replace the persisted suffix with a new one.

    Used by the operator after a NamingConflict. The old suffix is kept in
    `previous_suffixes` so buckets created under it can still be found.
    """
    current = load_state(path)
    previous: List[str] = []
    if current is not None:
        previous = list(current.previous_suffixes) + [current.suffix]

    new_suffix = validate_suffix(generate())
    while current is not None and new_suffix == current.suffix:
        new_suffix = validate_suffix(generate())

    state = DeploymentState(suffix=new_suffix, created_at_utc=_utc_now(), previous_suffixes=previous)
    save_state(path, state)
    logger.info("rotated deployment suffix to %s (previous: %s)", new_suffix, ", ".join(previous) or "-")
    return state
