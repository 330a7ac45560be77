"""Match snapshot storage."""

import copy
from typing import Optional


class InMemoryMatchStore:
    """Keeps the latest snapshot dict per match id.

    Snapshots are deep-copied on the way in and out so callers can never
    mutate stored state.
    """

    def __init__(self):
        self._snapshots: dict[str, dict] = {}

    def save(self, snapshot: dict):
        self._snapshots[snapshot["id"]] = copy.deepcopy(snapshot)

    def load(self, match_id: str) -> Optional[dict]:
        snapshot = self._snapshots.get(match_id)
        return copy.deepcopy(snapshot) if snapshot is not None else None
