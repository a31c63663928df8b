"""
Undo support: immutable scheduler snapshots and the history stack.

The scheduler is the originator: it knows how to capture and restore its own
state. The undo manager only stores snapshots and hands them back.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

from .diary import Diary
from .models import Appointment, Professional, Resource, Task

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiarySnapshot:
    """Frozen copy of one diary's contents."""
    owner: Professional
    appointments: Tuple[Appointment, ...]
    tasks: Tuple[Task, ...]


@dataclass(frozen=True)
class SchedulerMemento:
    """
    Deep snapshot of the scheduler at one instant.

    Entities are immutable values, so copying the containers is a full
    copy. A memento is never mutated; restoring builds fresh diaries.
    """
    diaries: Tuple[DiarySnapshot, ...]
    shared_resources: Tuple[Resource, ...]

    @classmethod
    def capture(
        cls,
        diaries: Mapping[Professional, Diary],
        shared_resources: Sequence[Resource]
    ) -> "SchedulerMemento":
        return cls(
            diaries=tuple(
                DiarySnapshot(
                    owner=professional,
                    appointments=tuple(diary.get_all_appointments()),
                    tasks=tuple(diary.get_all_tasks()),
                )
                for professional, diary in diaries.items()
            ),
            shared_resources=tuple(shared_resources),
        )

    def restore_diaries(self, exclusive_time: bool = False) -> Dict[Professional, Diary]:
        """Build a new professional -> diary mapping from this snapshot."""
        return {
            snapshot.owner: Diary.rebuild(
                snapshot.owner,
                snapshot.appointments,
                snapshot.tasks,
                exclusive_time=exclusive_time
            )
            for snapshot in self.diaries
        }

    @property
    def professionals(self) -> List[Professional]:
        return [snapshot.owner for snapshot in self.diaries]


class Originator(Protocol):
    """Anything that can produce and restore a SchedulerMemento."""

    def create_memento(self) -> SchedulerMemento:
        """Capture the current state."""

    def restore_from_memento(self, memento: SchedulerMemento) -> None:
        """Replace the current state with the snapshot."""


class UndoManager:
    """
    Unbounded last-in-first-out history of snapshots.

    There is no redo: once a new state is saved after an undo, the undone
    future is gone.
    """

    def __init__(self, originator: Originator):
        self._originator = originator
        self._history: List[SchedulerMemento] = []

    def save_state(self) -> None:
        """Push a snapshot of the originator's current state."""
        self._history.append(self._originator.create_memento())

    def undo(self) -> bool:
        """
        Restore the most recent snapshot.

        Returns:
            True if a snapshot was restored, False if the history is empty
        """
        if not self._history:
            logger.debug("Nothing to undo")
            return False

        memento = self._history.pop()
        self._originator.restore_from_memento(memento)
        logger.info("Undo restored snapshot (%d left in history)", len(self._history))
        return True

    def discard_last(self) -> Optional[SchedulerMemento]:
        """Drop the most recent snapshot without restoring it."""
        if not self._history:
            return None
        return self._history.pop()

    def clear(self) -> None:
        self._history.clear()

    def snapshots(self) -> List[SchedulerMemento]:
        """Saved snapshots, oldest first."""
        return list(self._history)

    def replace_history(self, mementos: Iterable[SchedulerMemento]) -> None:
        """Install a previously saved history, oldest snapshot first."""
        self._history = list(mementos)

    def __len__(self) -> int:
        return len(self._history)
