from __future__ import annotations

import datetime

from django.test import SimpleTestCase

from core.elections_tally import TallyCandidate, format_percentage, tabulate_plurality

T0 = datetime.datetime(2026, 3, 1, 8, 0, tzinfo=datetime.UTC)


def _candidates(*ids: int, approved: bool = True) -> list[TallyCandidate]:
    return [
        TallyCandidate(id=cid, approved=approved, registered_at=T0 + datetime.timedelta(minutes=i))
        for i, cid in enumerate(ids)
    ]


def _votes(**counts: int) -> list[int | None]:
    ids: list[int | None] = []
    for key, count in counts.items():
        candidate_id = None if key == "blank" else int(key.removeprefix("c"))
        ids.extend([candidate_id] * count)
    return ids


class TabulatePluralityTests(SimpleTestCase):
    def test_five_three_two_without_blank_votes(self) -> None:
        rows = tabulate_plurality(candidates=_candidates(1, 2, 3), vote_candidate_ids=_votes(c1=5, c2=3, c3=2))

        self.assertEqual([(r.position, r.candidate_id, r.votes) for r in rows], [(1, 1, 5), (2, 2, 3), (3, 3, 2)])
        self.assertEqual([r.percentage for r in rows], [50.0, 30.0, 20.0])
        self.assertEqual([r.is_winner for r in rows], [True, False, False])
        self.assertFalse(any(r.is_blank for r in rows))
        self.assertAlmostEqual(sum(r.percentage for r in rows), 100.0)

    def test_blank_votes_are_ranked_among_candidates(self) -> None:
        rows = tabulate_plurality(
            candidates=_candidates(1, 2, 3),
            vote_candidate_ids=_votes(c1=5, c2=3, c3=2, blank=4),
        )

        self.assertEqual([(r.position, r.candidate_id, r.votes) for r in rows], [(1, 1, 5), (2, None, 4), (3, 2, 3), (4, 3, 2)])
        self.assertTrue(rows[0].is_winner)
        self.assertFalse(rows[1].is_winner)
        self.assertAlmostEqual(rows[0].percentage, 5 / 14 * 100)
        self.assertAlmostEqual(rows[1].percentage, 4 / 14 * 100)
        self.assertAlmostEqual(sum(r.percentage for r in rows), 100.0)

    def test_blank_plurality_has_no_winner(self) -> None:
        rows = tabulate_plurality(candidates=_candidates(1, 2), vote_candidate_ids=_votes(c1=1, blank=3))

        self.assertIsNone(rows[0].candidate_id)
        self.assertEqual(rows[0].position, 1)
        self.assertFalse(any(r.is_winner for r in rows))

    def test_zero_vote_candidates_are_listed(self) -> None:
        rows = tabulate_plurality(candidates=_candidates(1, 2), vote_candidate_ids=_votes(c1=2))

        self.assertEqual([(r.candidate_id, r.votes, r.percentage) for r in rows], [(1, 2, 100.0), (2, 0, 0.0)])

    def test_no_votes_at_all(self) -> None:
        rows = tabulate_plurality(candidates=_candidates(1, 2), vote_candidate_ids=[])

        self.assertEqual([r.percentage for r in rows], [0.0, 0.0])
        self.assertEqual([r.is_winner for r in rows], [True, False])
        self.assertFalse(any(r.is_blank for r in rows))

    def test_sole_approved_candidate_wins_without_votes(self) -> None:
        rows = tabulate_plurality(
            candidates=[TallyCandidate(id=1, approved=True, registered_at=T0)],
            vote_candidate_ids=[],
        )

        self.assertEqual(len(rows), 1)
        self.assertTrue(rows[0].is_winner)
        self.assertEqual(rows[0].votes, 0)

    def test_tie_goes_to_the_earlier_registration(self) -> None:
        later_id_first = [
            TallyCandidate(id=9, approved=True, registered_at=T0),
            TallyCandidate(id=4, approved=True, registered_at=T0 + datetime.timedelta(minutes=5)),
        ]

        rows = tabulate_plurality(candidates=list(reversed(later_id_first)), vote_candidate_ids=[9, 4])

        self.assertEqual([r.candidate_id for r in rows], [9, 4])
        self.assertTrue(rows[0].is_winner)

    def test_tie_with_same_registration_time_goes_to_lower_id(self) -> None:
        candidates = [
            TallyCandidate(id=7, approved=True, registered_at=T0),
            TallyCandidate(id=3, approved=True, registered_at=T0),
        ]

        rows = tabulate_plurality(candidates=candidates, vote_candidate_ids=[7, 3])

        self.assertEqual([r.candidate_id for r in rows], [3, 7])

    def test_candidate_ties_rank_ahead_of_blank(self) -> None:
        rows = tabulate_plurality(candidates=_candidates(1), vote_candidate_ids=_votes(c1=2, blank=2))

        self.assertEqual([r.candidate_id for r in rows], [1, None])
        self.assertTrue(rows[0].is_winner)

    def test_unapproved_leader_is_not_a_winner(self) -> None:
        rows = tabulate_plurality(candidates=_candidates(1, approved=False), vote_candidate_ids=[1])

        self.assertFalse(rows[0].is_winner)

    def test_votes_for_unknown_candidates_are_rejected(self) -> None:
        with self.assertRaises(ValueError):
            tabulate_plurality(candidates=_candidates(1), vote_candidate_ids=[1, 99])

    def test_repeated_runs_are_identical(self) -> None:
        candidates = _candidates(1, 2, 3)
        votes = _votes(c1=3, c2=3, c3=1, blank=2)

        first = tabulate_plurality(candidates=candidates, vote_candidate_ids=votes)
        second = tabulate_plurality(candidates=candidates, vote_candidate_ids=list(reversed(votes)))

        self.assertEqual(first, second)

    def test_format_percentage(self) -> None:
        self.assertEqual(format_percentage(100 / 3), "33.3")
        self.assertEqual(format_percentage(50.0, decimals=2), "50.00")
