from __future__ import annotations

from django.test import TestCase

from core import elections_services
from core.elections_stats import participation_by_grade, voting_stats
from core.models import Election, ElectionProcess, Enrollment, Grade
from core.tests.utils_test_data import advance_to, create_process, create_school, election_for, enroll_student

Office = Election.Office


class ParticipationStatsTests(TestCase):
    def setUp(self) -> None:
        self.school = create_school()
        Grade.objects.create(institution=self.school.institution, name="Once", ordinal=11)
        self.process = advance_to(create_process(self.school), ElectionProcess.Phase.voting)
        self.ana = enroll_student(self.school, "6A", first_name="Ana")
        self.beto = enroll_student(self.school, "6B", first_name="Beto")
        self.carla = enroll_student(self.school, "7A", first_name="Carla")
        self.dario = enroll_student(self.school, "7A", first_name="Dario")

    def test_empty_process(self) -> None:
        stats = voting_stats(self.process)

        self.assertEqual(stats.total_students, 4)
        self.assertEqual(stats.total_voters, 0)
        self.assertEqual(stats.participation_rate, 0.0)

    def test_voters_are_counted_once_across_elections(self) -> None:
        personero = election_for(self.process, Office.personero)
        contralor = election_for(self.process, Office.contralor)
        elections_services.cast_vote(election=personero, voter=self.ana)
        elections_services.cast_vote(election=contralor, voter=self.ana)
        elections_services.cast_vote(election=personero, voter=self.carla)

        stats = voting_stats(self.process)

        self.assertEqual(stats.total_voters, 2)
        self.assertEqual(stats.participation_rate, 50.0)
        by_id = {e.election_id: e for e in stats.elections}
        self.assertEqual(by_id[personero.pk].total_votes, 2)
        self.assertEqual(by_id[contralor.pk].total_votes, 1)
        self.assertEqual(len(stats.elections), self.process.elections.count())

    def test_withdrawn_students_are_not_eligible(self) -> None:
        Enrollment.objects.filter(student=self.dario).update(status=Enrollment.Status.withdrawn)

        self.assertEqual(voting_stats(self.process).total_students, 3)

    def test_participation_by_grade_skips_empty_grades(self) -> None:
        personero = election_for(self.process, Office.personero)
        elections_services.cast_vote(election=personero, voter=self.ana)
        elections_services.cast_vote(election=personero, voter=self.carla)
        elections_services.cast_vote(election=personero, voter=self.dario)

        rows = participation_by_grade(self.process)

        self.assertEqual([r.grade_name for r in rows], ["Sexto", "Septimo"])
        sexto, septimo = rows
        self.assertEqual((sexto.total_students, sexto.voters, sexto.participation_rate), (2, 1, 50.0))
        self.assertEqual((septimo.total_students, septimo.voters, septimo.participation_rate), (2, 2, 100.0))
