"""In-memory fallback store for processed notes."""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Mapping, Optional

_MAX_NOTES = 200


class InMemoryNoteStore:
    """Bounded note store; the oldest entries are evicted first."""

    def __init__(self, max_notes: int = _MAX_NOTES) -> None:
        self._max_notes = max_notes
        self._notes: "OrderedDict[str, dict[str, Any]]" = OrderedDict()

    async def save(
        self,
        job_id: str,
        transcript: str,
        extracted_json: Mapping[str, Any],
        metadata: Mapping[str, Any],
    ) -> None:
        """Store (or replace) the note for the job and truncate to the limit."""

        self._notes.pop(job_id, None)
        self._notes[job_id] = {
            "job_id": job_id,
            "transcript": transcript,
            "extracted_json": dict(extracted_json),
            "metadata": dict(metadata),
        }
        while len(self._notes) > self._max_notes:
            self._notes.popitem(last=False)

    def get(self, job_id: str) -> Optional[dict[str, Any]]:
        """Return a copy of the stored note, if any."""

        note = self._notes.get(job_id)
        return dict(note) if note is not None else None

    def list_notes(self) -> list[dict[str, Any]]:
        return [dict(note) for note in self._notes.values()]

    def __len__(self) -> int:
        return len(self._notes)


__all__ = ["InMemoryNoteStore"]
