from __future__ import annotations

from dataclasses import dataclass, field

from prestigelayer.currency import CurrencyDef
from prestigelayer.effect import FormulaDef
from prestigelayer.rebuyable import RebuyableGroupDef
from prestigelayer.reset import ResetDef
from prestigelayer.run import RunDef
from prestigelayer.stage import StageDef
from prestigelayer.unlock import UnlockGroupDef


@dataclass
class LayerConfig:
    """Top-level layer configuration."""

    name: str = "Untitled"


def _duplicates(ids: list) -> list:
    seen: set = set()
    dupes: list = []
    for i in ids:
        if i in seen and i not in dupes:
            dupes.append(i)
        seen.add(i)
    return dupes


@dataclass
class LayerDefinition:
    """Complete static registry of a prestige layer. Read-only at runtime."""

    config: LayerConfig = field(default_factory=LayerConfig)
    currencies: list[CurrencyDef] = field(default_factory=list)
    unlock_groups: list[UnlockGroupDef] = field(default_factory=list)
    rebuyable_groups: list[RebuyableGroupDef] = field(default_factory=list)
    stages: list[StageDef] = field(default_factory=list)
    runs: list[RunDef] = field(default_factory=list)
    resets: list[ResetDef] = field(default_factory=list)
    formulas: list[FormulaDef] = field(default_factory=list)

    # Lookup dicts built in __post_init__
    _currencies_by_id: dict[str, CurrencyDef] = field(
        default_factory=dict, init=False, repr=False
    )
    _unlock_groups_by_id: dict[str, UnlockGroupDef] = field(
        default_factory=dict, init=False, repr=False
    )
    _rebuyable_groups_by_id: dict[str, RebuyableGroupDef] = field(
        default_factory=dict, init=False, repr=False
    )
    _stages_by_id: dict[str, StageDef] = field(default_factory=dict, init=False, repr=False)
    _runs_by_id: dict[str, RunDef] = field(default_factory=dict, init=False, repr=False)
    _resets_by_id: dict[str, ResetDef] = field(default_factory=dict, init=False, repr=False)
    _formulas_by_id: dict[str, FormulaDef] = field(
        default_factory=dict, init=False, repr=False
    )

    def __post_init__(self) -> None:
        self._currencies_by_id = {c.id: c for c in self.currencies}
        self._unlock_groups_by_id = {g.id: g for g in self.unlock_groups}
        self._rebuyable_groups_by_id = {g.id: g for g in self.rebuyable_groups}
        self._stages_by_id = {s.id: s for s in self.stages}
        self._runs_by_id = {r.id: r for r in self.runs}
        self._resets_by_id = {r.id: r for r in self.resets}
        self._formulas_by_id = {f.id: f for f in self.formulas}

    # Unknown ids mean the content and the caller disagree: fail fast.

    def get_currency(self, id: str) -> CurrencyDef:
        return self._lookup(self._currencies_by_id, id, "currency")

    def unlock_group(self, id: str) -> UnlockGroupDef:
        return self._lookup(self._unlock_groups_by_id, id, "unlock group")

    def rebuyable_group(self, id: str) -> RebuyableGroupDef:
        return self._lookup(self._rebuyable_groups_by_id, id, "rebuyable group")

    def stage(self, id: str) -> StageDef:
        return self._lookup(self._stages_by_id, id, "stage")

    def run(self, id: str) -> RunDef:
        return self._lookup(self._runs_by_id, id, "run")

    def reset(self, id: str) -> ResetDef:
        return self._lookup(self._resets_by_id, id, "reset")

    def formula(self, id: str) -> FormulaDef:
        return self._lookup(self._formulas_by_id, id, "formula")

    @staticmethod
    def _lookup(table: dict, id: str, kind: str):
        found = table.get(id)
        if found is None:
            raise KeyError(f"Unknown {kind}: {id!r}")
        return found

    def validate(self) -> list[str]:
        """Check for common definition errors. Returns list of error messages."""
        errors: list[str] = []
        currency_ids = {c.id for c in self.currencies}

        # Check for duplicate IDs
        for kind, items in (
            ("currency", self.currencies),
            ("unlock group", self.unlock_groups),
            ("rebuyable group", self.rebuyable_groups),
            ("stage", self.stages),
            ("run", self.runs),
            ("reset", self.resets),
            ("formula", self.formulas),
        ):
            for dupe in _duplicates([i.id for i in items]):
                errors.append(f"Duplicate {kind} ID: {dupe!r}")

        # Unlock groups: bit ids, keys, currencies
        for g in self.unlock_groups:
            for dupe in _duplicates([u.id for u in g.unlocks]):
                errors.append(f"Unlock group {g.id!r} has duplicate unlock ID {dupe!r}")
            for dupe in _duplicates([u.key for u in g.unlocks if u.key]):
                errors.append(f"Unlock group {g.id!r} has duplicate unlock key {dupe!r}")
            for u in g.unlocks:
                if u.id < 0:
                    errors.append(f"Unlock {u.key or u.id!r} in {g.id!r} has negative bit ID")
                cur = g.currency_for(u)
                if cur not in currency_ids:
                    errors.append(
                        f"Unlock {u.key or u.id!r} in {g.id!r} costs unknown currency {cur!r}"
                    )

        # Rebuyable groups
        for g in self.rebuyable_groups:
            for dupe in _duplicates([r.id for r in g.rebuyables]):
                errors.append(f"Rebuyable group {g.id!r} has duplicate rebuyable ID {dupe!r}")
            for dupe in _duplicates([r.key for r in g.rebuyables if r.key]):
                errors.append(f"Rebuyable group {g.id!r} has duplicate rebuyable key {dupe!r}")
            for r in g.rebuyables:
                cur = g.currency_for(r)
                if cur not in currency_ids:
                    errors.append(
                        f"Rebuyable {r.key or r.id!r} in {g.id!r} costs unknown currency {cur!r}"
                    )
                if r.purchase_cap is not None and r.purchase_cap < 0:
                    errors.append(f"Rebuyable {r.key or r.id!r} in {g.id!r} has negative cap")

        # Stage names cover every stage including the completed one
        for s in self.stages:
            if s.names and len(s.names) != s.completed:
                errors.append(
                    f"Stage {s.id!r} has {len(s.names)} names for {s.completed} stages"
                )

        # Resets reference known groups, bits and currencies
        for r in self.resets:
            for gid in r.rebuyable_groups:
                if gid not in self._rebuyable_groups_by_id:
                    errors.append(f"Reset {r.id!r} resets unknown rebuyable group {gid!r}")
            for gid, bits in r.unlock_bits.items():
                group = self._unlock_groups_by_id.get(gid)
                if group is None:
                    errors.append(f"Reset {r.id!r} resets unknown unlock group {gid!r}")
                    continue
                if bits == "all":
                    continue
                for uid in bits:
                    try:
                        group.get(uid)
                    except KeyError:
                        errors.append(
                            f"Reset {r.id!r} resets unknown unlock {uid!r} in {gid!r}"
                        )
            for cid in r.currencies:
                if cid not in currency_ids:
                    errors.append(f"Reset {r.id!r} resets unknown currency {cid!r}")

        return errors
