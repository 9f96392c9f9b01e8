from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from prestigelayer.state import PlayerProgress


@dataclass
class RunDef:
    """A temporary special mode the player enters and leaves.

    *on_start*/*on_stop* recompute whatever derived modifiers depend on the
    run flag; they are called after the flag changes.
    """

    id: str
    display_name: str = ""
    exclusive: bool = True
    on_start: Callable[[PlayerProgress], None] | None = None
    on_stop: Callable[[PlayerProgress], None] | None = None

    def __post_init__(self) -> None:
        if not self.display_name:
            self.display_name = self.id
