from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal


@dataclass
class ResetDef:
    """Definition of a reset: exactly what it clears, nothing else.

    ``unlock_bits`` maps a group id to the unlock ids to clear, or to
    ``"all"`` to clear the whole group.
    """

    id: str
    rebuyable_groups: list[str] = field(default_factory=list)
    unlock_bits: dict[str, list[int | str] | Literal["all"]] = field(default_factory=dict)
    currencies: list[str] = field(default_factory=list)
    stop_runs: bool = False


@dataclass(frozen=True)
class ResetResult:
    """Outcome of a reset."""

    reset_id: str
    rebuyable_groups: list[str] = field(default_factory=list)
    unlock_groups: list[str] = field(default_factory=list)
    currencies: list[str] = field(default_factory=list)
    runs_stopped: list[str] = field(default_factory=list)
