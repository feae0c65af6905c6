"""Plurality tabulation for single-seat elections.

Counting is a pure function of the candidate list and the cast votes so it
can be unit tested without a database; ``elections_services`` persists the
rows it returns.
"""

from __future__ import annotations

import datetime
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class TallyCandidate:
    id: int
    approved: bool
    registered_at: datetime.datetime


@dataclass(frozen=True)
class TallyRow:
    candidate_id: int | None
    votes: int
    percentage: float
    position: int
    is_winner: bool

    @property
    def is_blank(self) -> bool:
        return self.candidate_id is None


def _sort_key(
    *,
    candidate_id: int | None,
    votes: int,
    by_id: dict[int, TallyCandidate],
) -> tuple[int, int, datetime.datetime | None, int]:
    # On equal votes a candidate precedes the blank row, then earlier
    # registration wins, then the lower id.
    if candidate_id is None:
        return (-votes, 1, None, 0)
    candidate = by_id[candidate_id]
    return (-votes, 0, candidate.registered_at, candidate.id)


def tabulate_plurality(
    *,
    candidates: Sequence[TallyCandidate],
    vote_candidate_ids: Iterable[int | None],
) -> list[TallyRow]:
    """Count votes and rank candidates.

    ``vote_candidate_ids`` has one entry per cast vote; ``None`` is a blank
    vote. Votes for ids that are not in ``candidates`` raise ``ValueError``:
    the ballot box never records them, so seeing one means the data is
    corrupt.
    """
    by_id = {c.id: c for c in candidates}
    counts: Counter[int | None] = Counter(vote_candidate_ids)

    unknown = sorted(cid for cid in counts if cid is not None and cid not in by_id)
    if unknown:
        raise ValueError(f"Votes reference candidates outside the election: {unknown}")

    total = sum(counts.values())
    blank_votes = counts.get(None, 0)

    entries: list[tuple[int | None, int]] = [(c.id, counts.get(c.id, 0)) for c in candidates]
    if blank_votes > 0:
        entries.append((None, blank_votes))

    # Registration time alone can collide; the key carries the id too.
    entries.sort(key=lambda e: _sort_key(candidate_id=e[0], votes=e[1], by_id=by_id))

    rows: list[TallyRow] = []
    for position, (candidate_id, votes) in enumerate(entries, start=1):
        percentage = (votes * 100.0 / total) if total > 0 else 0.0
        is_winner = (
            position == 1
            and candidate_id is not None
            and by_id[candidate_id].approved
        )
        rows.append(
            TallyRow(
                candidate_id=candidate_id,
                votes=votes,
                percentage=percentage,
                position=position,
                is_winner=is_winner,
            )
        )
    return rows


def format_percentage(value: float, *, decimals: int = 1) -> str:
    return f"{value:.{decimals}f}"
