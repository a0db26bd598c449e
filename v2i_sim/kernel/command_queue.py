from collections import deque
from typing import Deque, List
from v2i_sim.kernel.commands import Command

class CommandQueue:
    """Commands submitted between ticks, applied in arrival order by the next tick."""

    def __init__(self):
        self._pending: Deque[Command] = deque()

    def add(self, command: Command):
        self._pending.append(command)

    def drain(self) -> List[Command]:
        """Takes every pending command; anything queued while they run waits for the next tick."""
        drained = list(self._pending)
        self._pending.clear()
        return drained

    def clear(self):
        self._pending.clear()
