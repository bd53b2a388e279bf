from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .graph import StateNode


@dataclass(slots=True)
class SubjectEntry:
    node: StateNode
    # False while the subject only sits on the reset node by default
    assigned: bool = False
    data: dict[str, Any] = field(default_factory=dict)


class SubjectStateStore:
    """Current conversation position of every subject seen so far.

    Entries are created on first contact and kept for the process lifetime.
    The store references graph nodes but does not own them. Callers serialise
    access per subject (see :class:`~convoflow.scheduler.SubjectScheduler`);
    every operation here is synchronous, so it is never interleaved.
    """

    def __init__(self) -> None:
        self._entries: dict[int, SubjectEntry] = {}

    def __contains__(self, subject_id: object) -> bool:
        return subject_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, subject_id: int) -> SubjectEntry | None:
        return self._entries.get(subject_id)

    def current(self, subject_id: int) -> StateNode | None:
        entry = self._entries.get(subject_id)
        return entry.node if entry is not None else None

    def ensure(self, subject_id: int, default: StateNode) -> SubjectEntry:
        entry = self._entries.get(subject_id)
        if entry is None:
            entry = SubjectEntry(node=default)
            self._entries[subject_id] = entry
        return entry

    def set(self, subject_id: int, node: StateNode) -> SubjectEntry:
        entry = self._entries.get(subject_id)
        if entry is None:
            entry = SubjectEntry(node=node, assigned=True)
            self._entries[subject_id] = entry
        else:
            entry.node = node
            entry.assigned = True
        return entry

    def data(self, subject_id: int) -> dict[str, Any] | None:
        entry = self._entries.get(subject_id)
        return entry.data if entry is not None else None

    def snapshot(self) -> dict[int, str]:
        return {
            subject_id: entry.node.name for subject_id, entry in self._entries.items()
        }
