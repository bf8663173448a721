"""
status_rank.py — Ordinal priority of interview statuses.
Lower rank = better record to keep when several rows describe the same pairing.
"""

from typing import Iterable, Mapping, Optional

UNRANKED = 99

# Must match the raw values present in the interview log
DEFAULT_STATUS_VOCABULARY: dict[int, list[str]] = {
    1: ["COMPLETED", "Feedback Provided", "Pending Feedback", "No Show"],
    2: ["SCHEDULED"],
    3: ["PENDING", "INVITED", "EMAIL SENT"],
}


class StatusRanker:
    """Maps a raw status string to its rank using a configurable vocabulary."""

    def __init__(self, vocabulary: Optional[Mapping[int, Iterable[str]]] = None, default_rank: int = UNRANKED):
        vocabulary = DEFAULT_STATUS_VOCABULARY if vocabulary is None else vocabulary
        self.default_rank = default_rank
        self._ranks: dict[str, int] = {}
        # Iterate best rank first so a status listed twice keeps its best rank
        for rank in sorted(vocabulary):
            for status in vocabulary[rank]:
                self._ranks.setdefault(str(status).strip(), int(rank))

    def rank(self, status) -> int:
        if status is None:
            return self.default_rank
        text = str(status).strip()
        if not text:
            return self.default_rank
        return self._ranks.get(text, self.default_rank)

    def statuses_for(self, rank: int) -> set[str]:
        return {status for status, r in self._ranks.items() if r == rank}
