from __future__ import annotations

from unittest.mock import patch

from django.test import TestCase

from core import elections_services
from core.elections_services import InvalidPhaseTransitionError, TabulationError
from core.models import AuditLogEntry, Candidate, Election, ElectionProcess, ElectionResult, Student
from core.tests.utils_test_data import (
    advance_to,
    approved_candidate,
    create_process,
    create_school,
    election_for,
    enroll_student,
)

Office = Election.Office
Phase = ElectionProcess.Phase


class CloseProcessTests(TestCase):
    def setUp(self) -> None:
        self.school = create_school(layout={"Sexto": ("6A",)})
        self.voters: list[Student] = []

    def _setup_personero_race(self, *, allow_blank_vote: bool) -> tuple[ElectionProcess, Election, list[Candidate]]:
        process = create_process(
            self.school,
            enable_contralor=False,
            enable_grade_representative=False,
            enable_group_representative=False,
            allow_blank_vote=allow_blank_vote,
        )
        process = advance_to(process, Phase.registration)
        election = election_for(process, Office.personero)
        candidates = [
            approved_candidate(election, enroll_student(self.school, "6A", first_name=name), ballot_number=n)
            for n, name in enumerate(("Ana", "Beto", "Carla"), start=1)
        ]
        process = advance_to(process, Phase.voting)
        return process, election, candidates

    def _cast(self, election: Election, candidate: Candidate | None, count: int) -> None:
        for _ in range(count):
            voter = enroll_student(self.school, "6A", first_name=f"Votante{len(self.voters)}")
            self.voters.append(voter)
            elections_services.cast_vote(
                election=election,
                voter=voter,
                candidate_id=candidate.pk if candidate is not None else None,
            )

    def _rows(self, election: Election) -> list[tuple[int, int | None, int, bool]]:
        return list(
            ElectionResult.objects.filter(election=election)
            .order_by("position")
            .values_list("position", "candidate_id", "votes", "is_winner")
        )

    def test_five_three_two_without_blank_votes(self) -> None:
        process, election, (a, b, c) = self._setup_personero_race(allow_blank_vote=False)
        self._cast(election, a, 5)
        self._cast(election, b, 3)
        self._cast(election, c, 2)

        process = elections_services.close_process(process=process, actor="coordinator")

        self.assertEqual(process.phase, Phase.closed)
        self.assertIsNotNone(process.closed_at)
        self.assertEqual(self._rows(election), [(1, a.pk, 5, True), (2, b.pk, 3, False), (3, c.pk, 2, False)])
        percentages = list(
            ElectionResult.objects.filter(election=election).order_by("position").values_list("percentage", flat=True)
        )
        self.assertEqual(percentages, [50.0, 30.0, 20.0])
        self.assertAlmostEqual(sum(percentages), 100.0)

    def test_blank_votes_sit_between_first_and_second(self) -> None:
        process, election, (a, b, c) = self._setup_personero_race(allow_blank_vote=True)
        self._cast(election, a, 5)
        self._cast(election, b, 3)
        self._cast(election, c, 2)
        self._cast(election, None, 4)

        elections_services.close_process(process=process)

        self.assertEqual(
            self._rows(election),
            [(1, a.pk, 5, True), (2, None, 4, False), (3, b.pk, 3, False), (4, c.pk, 2, False)],
        )
        results = elections_services.results_for_election(election)
        self.assertEqual(results.total_votes, 14)
        self.assertEqual(results.winner.candidate_id, a.pk)
        self.assertAlmostEqual(sum(r.percentage for r in results.rows), 100.0)

    def test_rank_one_has_the_most_votes_and_one_winner_at_most(self) -> None:
        process, election, (a, b, _c) = self._setup_personero_race(allow_blank_vote=True)
        self._cast(election, b, 2)
        self._cast(election, a, 2)
        self._cast(election, None, 1)

        elections_services.close_process(process=process)

        rows = list(ElectionResult.objects.filter(election=election).order_by("position"))
        self.assertTrue(all(rows[0].votes >= r.votes for r in rows))
        winners = [r for r in rows if r.is_winner]
        self.assertEqual(len(winners), 1)
        self.assertIsNotNone(winners[0].candidate_id)
        # Equal votes: the earlier registration ranks first.
        self.assertEqual(winners[0].candidate_id, a.pk)

    def test_closing_outside_voting_is_rejected(self) -> None:
        process = advance_to(create_process(self.school), Phase.campaign)

        with self.assertRaises(InvalidPhaseTransitionError):
            elections_services.close_process(process=process)

        process.refresh_from_db()
        self.assertEqual(process.phase, Phase.campaign)
        self.assertIsNone(process.closed_at)
        self.assertFalse(ElectionResult.objects.exists())

    def test_failed_tabulation_leaves_everything_unchanged(self) -> None:
        process = create_process(self.school)
        process = advance_to(process, Phase.voting)
        self._cast(election_for(process, Office.personero), None, 2)
        failing_election = election_for(process, Office.group_representative)

        real_tabulate = elections_services.tabulate_plurality

        def tabulate_or_fail(*, candidates, vote_candidate_ids):
            rows = real_tabulate(candidates=candidates, vote_candidate_ids=vote_candidate_ids)
            if not list(vote_candidate_ids):
                raise ValueError(f"corrupt ballots for election {failing_election.pk}")
            return rows

        with patch("core.elections_services.tabulate_plurality", side_effect=tabulate_or_fail):
            with self.assertRaises(TabulationError) as ctx:
                elections_services.close_process(process=process, actor="coordinator")

        self.assertIn("Recovery:", str(ctx.exception))
        process.refresh_from_db()
        self.assertEqual(process.phase, Phase.voting)
        self.assertIsNone(process.closed_at)
        self.assertFalse(ElectionResult.objects.exists())
        self.assertFalse(Election.objects.filter(process=process, tabulated_at__isnull=False).exists())
        failure = AuditLogEntry.objects.get(process=process, event_type="process_close_failed")
        self.assertEqual(failure.actor, "coordinator")
        self.assertFalse(AuditLogEntry.objects.filter(process=process, event_type="process_closed").exists())

        # The process can be closed once the data problem is gone.
        process = elections_services.close_process(process=process)
        self.assertEqual(process.phase, Phase.closed)
        self.assertEqual(
            Election.objects.filter(process=process, tabulated_at__isnull=True).count(),
            0,
        )

    def test_every_election_is_tabulated_on_close(self) -> None:
        process = advance_to(create_process(self.school), Phase.voting)

        elections_services.close_process(process=process)

        self.assertFalse(Election.objects.filter(process=process, tabulated_at__isnull=True).exists())
        closed = AuditLogEntry.objects.get(process=process, event_type="process_closed")
        self.assertEqual(len(closed.payload["elections"]), process.elections.count())

    def test_closed_process_cannot_be_closed_again(self) -> None:
        process = advance_to(create_process(self.school), Phase.voting)
        elections_services.close_process(process=process)

        with self.assertRaises(InvalidPhaseTransitionError):
            elections_services.close_process(process=process)

    def test_retabulation_is_idempotent(self) -> None:
        process, election, (a, b, c) = self._setup_personero_race(allow_blank_vote=True)
        self._cast(election, a, 2)
        self._cast(election, b, 2)
        self._cast(election, c, 1)
        self._cast(election, None, 3)
        elections_services.close_process(process=process)

        def snapshot() -> list[tuple[object, ...]]:
            return list(
                ElectionResult.objects.filter(election=election)
                .order_by("position")
                .values_list("position", "candidate_id", "votes", "percentage", "is_winner")
            )

        first = snapshot()
        elections_services.tabulate_election(election=election, actor="coordinator")
        second = snapshot()

        self.assertEqual(first, second)
        self.assertEqual(ElectionResult.objects.filter(election=election).count(), 4)

    def test_retabulation_requires_a_closed_process(self) -> None:
        process = advance_to(create_process(self.school), Phase.voting)

        with self.assertRaises(InvalidPhaseTransitionError):
            elections_services.tabulate_election(election=election_for(process, Office.personero))

    def test_votes_are_rejected_after_close(self) -> None:
        process, election, (a, _b, _c) = self._setup_personero_race(allow_blank_vote=True)
        elections_services.close_process(process=process)

        with self.assertRaises(InvalidPhaseTransitionError):
            self._cast(election, a, 1)
