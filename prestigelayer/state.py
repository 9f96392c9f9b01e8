from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping

from prestigelayer._types import ZERO, Number, Value, clamp_min, to_value

if TYPE_CHECKING:
    from prestigelayer.currency import CurrencyLedger
    from prestigelayer.definition import LayerDefinition


class PlayerProgress:
    """Mutable record of everything this engine persists for a player.

    Unlock groups are stored as one int bitmask each; rebuyable groups as a
    map of rebuyable id to purchase count. Loading and saving the record is
    up to the caller (see ``to_dict``/``from_dict``).
    """

    def __init__(self, definition: LayerDefinition) -> None:
        self.unlock_bits: dict[str, int] = {}
        self.rebuyables: dict[str, dict[int, int]] = {}
        self.runs: dict[str, bool] = {}
        self.last_update: float = 0.0

        for gdef in definition.unlock_groups:
            self.unlock_bits[gdef.id] = 0

        for rdef in definition.rebuyable_groups:
            self.rebuyables[rdef.id] = {r.id: 0 for r in rdef.rebuyables}

        for run in definition.runs:
            self.runs[run.id] = False

    def bits(self, group_id: str) -> int:
        if group_id not in self.unlock_bits:
            raise KeyError(f"Unknown unlock group: {group_id!r}")
        return self.unlock_bits[group_id]

    def counts(self, group_id: str) -> dict[int, int]:
        counts = self.rebuyables.get(group_id)
        if counts is None:
            raise KeyError(f"Unknown rebuyable group: {group_id!r}")
        return counts

    def is_running(self, run_id: str) -> bool:
        if run_id not in self.runs:
            raise KeyError(f"Unknown run: {run_id!r}")
        return self.runs[run_id]

    def to_dict(self) -> dict[str, Any]:
        return {
            "unlock_bits": dict(self.unlock_bits),
            "rebuyables": {
                gid: {str(rid): n for rid, n in counts.items()}
                for gid, counts in self.rebuyables.items()
            },
            "runs": dict(self.runs),
            "last_update": self.last_update,
        }

    @classmethod
    def from_dict(cls, definition: LayerDefinition, data: Mapping[str, Any]) -> PlayerProgress:
        """Restore a record, ignoring groups the definition no longer has."""
        progress = cls(definition)
        for gid, bits in data.get("unlock_bits", {}).items():
            if gid in progress.unlock_bits:
                progress.unlock_bits[gid] = int(bits)
        for gid, counts in data.get("rebuyables", {}).items():
            target = progress.rebuyables.get(gid)
            if target is None:
                continue
            for rid, n in counts.items():
                if int(rid) in target:
                    target[int(rid)] = max(0, int(n))
        for run_id, active in data.get("runs", {}).items():
            if run_id in progress.runs:
                progress.runs[run_id] = bool(active)
        progress.last_update = float(data.get("last_update", 0.0))
        return progress


class LiveState:
    """Read-only view of the live economy handed to every effect formula.

    Nothing is cached: each accessor reads the current progress record,
    ledger and external values.
    """

    __slots__ = (
        "_definition",
        "_progress",
        "_ledger",
        "_externals",
        "_flags",
        "_disabled",
        "_now",
    )

    def __init__(
        self,
        definition: LayerDefinition,
        progress: PlayerProgress,
        ledger: CurrencyLedger,
        externals: Mapping[str, Any] | None = None,
        flags: frozenset[str] = frozenset(),
        disabled: frozenset[str] = frozenset(),
        now: float = 0.0,
    ) -> None:
        self._definition = definition
        self._progress = progress
        self._ledger = ledger
        self._externals = MappingProxyType(dict(externals or {}))
        self._flags = frozenset(flags)
        self._disabled = frozenset(disabled)
        self._now = now

    @property
    def now(self) -> float:
        """Wall-clock time in milliseconds."""
        return self._now

    @property
    def last_update(self) -> float:
        return self._progress.last_update

    @property
    def elapsed(self) -> float:
        """Milliseconds since the last recorded update, raw (may be negative)."""
        return self._now - self._progress.last_update

    def balance(self, currency_id: str) -> Value:
        return clamp_min(self._ledger.balance(currency_id), ZERO)

    def value(self, key: str, default: Number = 0) -> Value:
        """An external value owned by another system, or *default*."""
        raw = self._externals.get(key)
        if raw is None:
            return to_value(default)
        return to_value(raw)

    def flag(self, name: str) -> bool:
        return name in self._flags

    def is_disabled(self, system: str) -> bool:
        return system in self._disabled

    def is_unlocked(self, group_id: str, unlock_id: int | str) -> bool:
        udef = self._definition.unlock_group(group_id).get(unlock_id)
        return bool(self._progress.bits(group_id) & (1 << udef.id))

    def rebuyable_count(self, group_id: str, rebuyable_id: int | str) -> int:
        rdef = self._definition.rebuyable_group(group_id).get(rebuyable_id)
        return self._progress.counts(group_id)[rdef.id]

    def is_running(self, run_id: str) -> bool:
        return self._progress.is_running(run_id)

    def stage(self, stage_id: str) -> int:
        return self._definition.stage(stage_id).resolve(self)

    def formula(self, formula_id: str) -> Any:
        return self._definition.formula(formula_id).evaluate(self)
