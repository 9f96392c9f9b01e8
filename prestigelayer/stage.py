from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, Mapping, TypeVar

from prestigelayer.requirement import Requirement

if TYPE_CHECKING:
    from prestigelayer.state import LiveState

T = TypeVar("T")

_MISSING = object()


class StageResolver:
    """Maps an ordered chain of gates to a 1-based stage.

    The stage is the index of the first unmet gate, or ``len(gates) + 1``
    once every gate is met. Gates are checked strictly in order and nothing
    after the first unmet gate is evaluated.
    """

    def __init__(self, gates: list[Requirement]) -> None:
        self.gates = list(gates)

    @property
    def completed(self) -> int:
        return len(self.gates) + 1

    def resolve(self, live: LiveState) -> int:
        for stage, gate in enumerate(self.gates, start=1):
            if not gate.evaluate(live):
                return stage
        return self.completed


@dataclass
class StageDef:
    """A named stage chain: its gates plus a display name per stage."""

    id: str
    gates: list[Requirement] = field(default_factory=list)
    names: list[str] = field(default_factory=list)

    _resolver: StageResolver = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._resolver = StageResolver(self.gates)

    @property
    def completed(self) -> int:
        return self._resolver.completed

    def resolve(self, live: LiveState) -> int:
        return self._resolver.resolve(live)

    def name(self, stage: int) -> str:
        if not 1 <= stage <= len(self.names):
            raise KeyError(f"Stage {stage} has no name in {self.id!r}")
        return self.names[stage - 1]


class StageTable(Generic[T]):
    """Pure stage -> parameter lookup; no side effects on transitions."""

    def __init__(self, values: Mapping[int, T], default: Any = _MISSING) -> None:
        self._values = dict(values)
        self._default = default

    def __getitem__(self, stage: int) -> T:
        if stage in self._values:
            return self._values[stage]
        if self._default is _MISSING:
            raise KeyError(f"No value for stage {stage}")
        return self._default

    def __contains__(self, stage: int) -> bool:
        return stage in self._values or self._default is not _MISSING

    def __repr__(self) -> str:
        return f"StageTable({self._values!r})"
