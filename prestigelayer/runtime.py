from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

from prestigelayer._types import Number, Value
from prestigelayer.currency import CurrencyLedger
from prestigelayer.definition import LayerDefinition
from prestigelayer.events import EventHub, EventRecord, LayerEvent
from prestigelayer.rebuyable import RebuyableGroup
from prestigelayer.reset import ResetResult
from prestigelayer.state import LiveState, PlayerProgress
from prestigelayer.unlock import UnlockGroup

logger = logging.getLogger(__name__)


def _wall_clock_ms() -> float:
    return time.time() * 1000.0


class LayerRuntime:
    """Authoritative processor for one player's prestige layer.

    Every mutating action runs under a single lock, commits, and only then
    publishes events. Effects are recomputed from live state on every query.
    """

    def __init__(
        self,
        definition: LayerDefinition,
        ledger: CurrencyLedger | None = None,
        progress: PlayerProgress | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        errors = definition.validate()
        if errors:
            raise ValueError(
                "Invalid LayerDefinition:\n" + "\n".join(f"  - {e}" for e in errors)
            )

        self.definition = definition
        self.ledger = ledger if ledger is not None else CurrencyLedger(definition.currencies)
        self.progress = progress if progress is not None else PlayerProgress(definition)
        self.events = EventHub()
        self._clock = clock or _wall_clock_ms
        self._lock = threading.RLock()
        self._externals: dict[str, Any] = {}
        self._flags: set[str] = set()
        self._disabled: set[str] = set()

        self._unlock_groups = {
            g.id: UnlockGroup(g, self.progress, self.ledger)
            for g in definition.unlock_groups
        }
        self._rebuyable_groups = {
            g.id: RebuyableGroup(g, self.progress, self.ledger)
            for g in definition.rebuyable_groups
        }

    # ── Live context ─────────────────────────────────────────────────

    def live(self) -> LiveState:
        """A fresh read-only snapshot of inputs for effect formulas."""
        with self._lock:
            return LiveState(
                self.definition,
                self.progress,
                self.ledger,
                externals=self._externals,
                flags=frozenset(self._flags),
                disabled=frozenset(self._disabled),
                now=self._clock(),
            )

    def set_external(self, key: str, value: Any) -> None:
        """Publish a value owned by another system (galaxies, multipliers, ...)."""
        with self._lock:
            self._externals[key] = value

    def clear_external(self, key: str) -> None:
        with self._lock:
            self._externals.pop(key, None)

    def set_flag(self, name: str, on: bool = True) -> None:
        with self._lock:
            if on:
                self._flags.add(name)
            else:
                self._flags.discard(name)

    def disable(self, system: str) -> None:
        """Suppress effects of groups disabled by *system* without un-buying them."""
        with self._lock:
            self._disabled.add(system)

    def enable(self, system: str) -> None:
        with self._lock:
            self._disabled.discard(system)

    def touch(self, now: float | None = None) -> None:
        """Record *now* (default: the clock) as the last update time."""
        with self._lock:
            self.progress.last_update = self._clock() if now is None else now

    # ── Player actions ───────────────────────────────────────────────

    def purchase_unlock(self, group_id: str, unlock_id: int | str) -> bool:
        """Attempt to buy an unlock. Returns True on success."""
        group = self.unlock_group(group_id)
        with self._lock:
            before = self._stage_snapshot()
            if not group.purchase(unlock_id, self.live()):
                return False
            records = [
                EventRecord(
                    LayerEvent.UNLOCK_PURCHASED,
                    group_id,
                    {"unlock": group.definition.get(unlock_id).id},
                )
            ]
            records += self._stage_changes(before)
        self._publish(records)
        return True

    def grant_unlock(self, group_id: str, unlock_id: int | str) -> bool:
        """Set an unlock for free. Returns True if it was newly set."""
        group = self.unlock_group(group_id)
        with self._lock:
            before = self._stage_snapshot()
            if not group.unlock(unlock_id):
                return False
            records = [
                EventRecord(
                    LayerEvent.UNLOCK_GRANTED,
                    group_id,
                    {"unlock": group.definition.get(unlock_id).id},
                )
            ]
            records += self._stage_changes(before)
        self._publish(records)
        return True

    def purchase_all_unlocks(self, group_id: str) -> list[int]:
        """Buy every affordable unlock in id order. Returns ids bought."""
        group = self.unlock_group(group_id)
        bought: list[int] = []
        for udef in sorted(group.definition.unlocks, key=lambda u: u.id):
            if self.purchase_unlock(group_id, udef.id):
                bought.append(udef.id)
        return bought

    def purchase_rebuyable(self, group_id: str, rebuyable_id: int | str) -> bool:
        """Attempt to buy one level of a rebuyable. Returns True on success."""
        group = self.rebuyable_group(group_id)
        with self._lock:
            before = self._stage_snapshot()
            if not group.purchase(rebuyable_id, self.live()):
                return False
            rid = group.definition.get(rebuyable_id).id
            records = [
                EventRecord(
                    LayerEvent.REBUYABLE_PURCHASED,
                    group_id,
                    {"rebuyable": rid, "count": group.count(rid)},
                )
            ]
            records += self._stage_changes(before)
        self._publish(records)
        return True

    def purchase_max_rebuyable(
        self, group_id: str, rebuyable_id: int | str, limit: int | None = None
    ) -> int:
        """Buy levels until unaffordable, capped, or *limit*. Returns levels bought."""
        bought = 0
        while limit is None or bought < limit:
            if not self.purchase_rebuyable(group_id, rebuyable_id):
                break
            bought += 1
        return bought

    def start_run(self, run_id: str) -> bool:
        """Enter a run, leaving any other run first if it is exclusive."""
        run = self.definition.run(run_id)
        records: list[EventRecord] = []
        with self._lock:
            before = self._stage_snapshot()
            if run.exclusive:
                for other in self.definition.runs:
                    if self.progress.runs[other.id]:
                        records += self._stop(other.id)
            self.progress.runs[run_id] = True
            logger.info("Started run %s", run_id)
            if run.on_start is not None:
                run.on_start(self.progress)
            records.append(EventRecord(LayerEvent.RUN_STARTED, run_id))
            records += self._stage_changes(before)
        self._publish(records)
        return True

    def stop_run(self, run_id: str) -> bool:
        """Leave a run. Returns False if it was not running."""
        self.definition.run(run_id)
        with self._lock:
            if not self.progress.runs[run_id]:
                return False
            before = self._stage_snapshot()
            records = self._stop(run_id)
            records += self._stage_changes(before)
        self._publish(records)
        return True

    def clear_runs(self) -> list[str]:
        """Leave every active run. Returns the ids stopped."""
        stopped: list[str] = []
        for run in self.definition.runs:
            if self.stop_run(run.id):
                stopped.append(run.id)
        return stopped

    def trigger_reset(self, reset_id: str) -> ResetResult:
        """Apply a reset: clears exactly what the ResetDef names."""
        reset = self.definition.reset(reset_id)
        records: list[EventRecord] = []
        runs_stopped: list[str] = []
        with self._lock:
            before = self._stage_snapshot()

            for gid in reset.rebuyable_groups:
                self.rebuyable_group(gid).reset()

            for gid, bits in reset.unlock_bits.items():
                group = self.unlock_group(gid)
                if bits == "all":
                    group.reset_group()
                else:
                    group.reset_bits(list(bits))

            for cid in reset.currencies:
                self.ledger.reset(cid)

            if reset.stop_runs:
                for run in self.definition.runs:
                    if self.progress.runs[run.id]:
                        records += self._stop(run.id)
                        runs_stopped.append(run.id)

            logger.info("Applied reset %s", reset_id)
            result = ResetResult(
                reset_id=reset_id,
                rebuyable_groups=list(reset.rebuyable_groups),
                unlock_groups=list(reset.unlock_bits),
                currencies=list(reset.currencies),
                runs_stopped=runs_stopped,
            )
            records.append(
                EventRecord(
                    LayerEvent.RESET,
                    reset_id,
                    {
                        "rebuyable_groups": result.rebuyable_groups,
                        "unlock_groups": result.unlock_groups,
                    },
                )
            )
            records += self._stage_changes(before)
        self._publish(records)
        return result

    # ── Queries ──────────────────────────────────────────────────────

    def unlock_group(self, group_id: str) -> UnlockGroup:
        group = self._unlock_groups.get(group_id)
        if group is None:
            raise KeyError(f"Unknown unlock group: {group_id!r}")
        return group

    def rebuyable_group(self, group_id: str) -> RebuyableGroup:
        group = self._rebuyable_groups.get(group_id)
        if group is None:
            raise KeyError(f"Unknown rebuyable group: {group_id!r}")
        return group

    def is_unlocked(self, group_id: str, unlock_id: int | str) -> bool:
        return self.unlock_group(group_id).is_unlocked(unlock_id)

    def can_be_applied(self, group_id: str, unlock_id: int | str) -> bool:
        return self.unlock_group(group_id).can_be_applied(unlock_id, self.live())

    def unlock_effect(self, group_id: str, unlock_id: int | str, capped: bool = True) -> Any:
        group = self.unlock_group(group_id)
        live = self.live()
        if capped:
            return group.capped_effect(unlock_id, live)
        return group.effect_value(unlock_id, live)

    def rebuyable_count(self, group_id: str, rebuyable_id: int | str) -> int:
        return self.rebuyable_group(group_id).count(rebuyable_id)

    def current_cost(self, group_id: str, rebuyable_id: int | str) -> Value:
        return self.rebuyable_group(group_id).current_cost(rebuyable_id)

    def reached_cap(self, group_id: str, rebuyable_id: int | str) -> bool:
        return self.rebuyable_group(group_id).reached_cap(rebuyable_id)

    def rebuyable_effect(
        self, group_id: str, rebuyable_id: int | str, capped: bool = True
    ) -> Any:
        group = self.rebuyable_group(group_id)
        live = self.live()
        if capped:
            return group.capped_effect(rebuyable_id, live)
        return group.current_effect(rebuyable_id, live)

    def current_stage(self, stage_id: str) -> int:
        return self.definition.stage(stage_id).resolve(self.live())

    def stage_name(self, stage_id: str) -> str:
        sdef = self.definition.stage(stage_id)
        return sdef.name(sdef.resolve(self.live()))

    def is_running(self, run_id: str) -> bool:
        return self.progress.is_running(run_id)

    def formula(self, formula_id: str) -> Any:
        return self.definition.formula(formula_id).evaluate(self.live())

    def balance(self, currency_id: str) -> Value:
        return self.ledger.balance(currency_id)

    def credit(self, currency_id: str, amount: Number) -> None:
        with self._lock:
            self.ledger.credit(currency_id, amount)

    # ── Private helpers ──────────────────────────────────────────────

    def _stop(self, run_id: str) -> list[EventRecord]:
        run = self.definition.run(run_id)
        self.progress.runs[run_id] = False
        logger.info("Stopped run %s", run_id)
        if run.on_stop is not None:
            run.on_stop(self.progress)
        return [EventRecord(LayerEvent.RUN_STOPPED, run_id)]

    def _stage_snapshot(self) -> dict[str, int]:
        live = self.live()
        return {s.id: s.resolve(live) for s in self.definition.stages}

    def _stage_changes(self, before: dict[str, int]) -> list[EventRecord]:
        after = self._stage_snapshot()
        records = []
        for sid, stage in after.items():
            if stage != before.get(sid):
                logger.info("Stage %s: %s -> %s", sid, before.get(sid), stage)
                records.append(
                    EventRecord(
                        LayerEvent.STAGE_ENTERED,
                        sid,
                        {"stage": stage, "previous": before.get(sid)},
                    )
                )
        return records

    def _publish(self, records: list[EventRecord]) -> None:
        for record in records:
            self.events.dispatch(record)
