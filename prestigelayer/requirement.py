from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable

from prestigelayer._types import Number, compare, to_value

if TYPE_CHECKING:
    from prestigelayer.state import LiveState


class Requirement(ABC):
    """Base class for all requirements: boolean conditions on live state."""

    @abstractmethod
    def evaluate(self, live: LiveState) -> bool: ...

    def __and__(self, other: Requirement) -> Requirement:
        return _AllRequirement([self, other])

    def __or__(self, other: Requirement) -> Requirement:
        return _AnyRequirement([self, other])


# ── Private implementations ──────────────────────────────────────────


class _ResourceRequirement(Requirement):
    def __init__(self, currency_id: str, op: str, threshold: Number) -> None:
        self.currency_id = currency_id
        self.op = op
        self.threshold = to_value(threshold)

    def evaluate(self, live: LiveState) -> bool:
        return compare(live.balance(self.currency_id), self.op, self.threshold)


class _UnlockedRequirement(Requirement):
    def __init__(self, group_id: str, unlock_id: int | str) -> None:
        self.group_id = group_id
        self.unlock_id = unlock_id

    def evaluate(self, live: LiveState) -> bool:
        return live.is_unlocked(self.group_id, self.unlock_id)


class _RebuyableCountRequirement(Requirement):
    def __init__(self, group_id: str, rebuyable_id: int | str, op: str, threshold: int) -> None:
        self.group_id = group_id
        self.rebuyable_id = rebuyable_id
        self.op = op
        self.threshold = threshold

    def evaluate(self, live: LiveState) -> bool:
        count = live.rebuyable_count(self.group_id, self.rebuyable_id)
        return compare(count, self.op, self.threshold)


class _RunningRequirement(Requirement):
    def __init__(self, run_id: str) -> None:
        self.run_id = run_id

    def evaluate(self, live: LiveState) -> bool:
        return live.is_running(self.run_id)


class _FlagRequirement(Requirement):
    def __init__(self, flag: str) -> None:
        self.flag = flag

    def evaluate(self, live: LiveState) -> bool:
        return live.flag(self.flag)


class _ExternalRequirement(Requirement):
    def __init__(self, key: str, op: str, threshold: Number) -> None:
        self.key = key
        self.op = op
        self.threshold = to_value(threshold)

    def evaluate(self, live: LiveState) -> bool:
        return compare(live.value(self.key), self.op, self.threshold)


class _StageRequirement(Requirement):
    def __init__(self, stage_id: str, op: str, stage: int) -> None:
        self.stage_id = stage_id
        self.op = op
        self.stage = stage

    def evaluate(self, live: LiveState) -> bool:
        return compare(live.stage(self.stage_id), self.op, self.stage)


class _AllRequirement(Requirement):
    def __init__(self, reqs: list[Requirement]) -> None:
        self.reqs = reqs

    def evaluate(self, live: LiveState) -> bool:
        return all(r.evaluate(live) for r in self.reqs)


class _AnyRequirement(Requirement):
    def __init__(self, reqs: list[Requirement]) -> None:
        self.reqs = reqs

    def evaluate(self, live: LiveState) -> bool:
        return any(r.evaluate(live) for r in self.reqs)


class _NotRequirement(Requirement):
    def __init__(self, req: Requirement) -> None:
        self.req = req

    def evaluate(self, live: LiveState) -> bool:
        return not self.req.evaluate(live)


class _CustomRequirement(Requirement):
    def __init__(self, fn: Callable[[LiveState], bool]) -> None:
        self.fn = fn

    def evaluate(self, live: LiveState) -> bool:
        return self.fn(live)


# ── Public factory ───────────────────────────────────────────────────


class Req:
    """Factory for built-in requirement types."""

    @staticmethod
    def resource(currency_id: str, op: str, threshold: Number) -> Requirement:
        return _ResourceRequirement(currency_id, op, threshold)

    @staticmethod
    def unlocked(group_id: str, unlock_id: int | str) -> Requirement:
        return _UnlockedRequirement(group_id, unlock_id)

    @staticmethod
    def rebuyable_count(
        group_id: str, rebuyable_id: int | str, op: str, threshold: int
    ) -> Requirement:
        return _RebuyableCountRequirement(group_id, rebuyable_id, op, threshold)

    @staticmethod
    def running(run_id: str) -> Requirement:
        return _RunningRequirement(run_id)

    @staticmethod
    def flag(flag: str) -> Requirement:
        return _FlagRequirement(flag)

    @staticmethod
    def external(key: str, op: str, threshold: Number) -> Requirement:
        return _ExternalRequirement(key, op, threshold)

    @staticmethod
    def stage(stage_id: str, op: str, stage: int) -> Requirement:
        return _StageRequirement(stage_id, op, stage)

    @staticmethod
    def all(*reqs: Requirement) -> Requirement:
        return _AllRequirement(list(reqs))

    @staticmethod
    def any(*reqs: Requirement) -> Requirement:
        return _AnyRequirement(list(reqs))

    @staticmethod
    def not_(req: Requirement) -> Requirement:
        return _NotRequirement(req)

    @staticmethod
    def custom(fn: Callable[[LiveState], bool]) -> Requirement:
        return _CustomRequirement(fn)
