from __future__ import annotations

from django.test import TestCase

from core import elections_services
from core.elections_eligibility import (
    eligible_elections,
    has_completed_voting,
    is_eligible_for_election,
    pending_elections,
    voter_scope,
)
from core.models import Election, ElectionProcess, Enrollment, Student
from core.tests.utils_test_data import (
    advance_to,
    create_process,
    create_school,
    election_for,
    enroll_student,
)

Office = Election.Office


class EligibilityResolverTests(TestCase):
    def setUp(self) -> None:
        self.school = create_school()
        self.process = advance_to(create_process(self.school), ElectionProcess.Phase.voting)
        self.student = enroll_student(self.school, "6A", first_name="Ana")

    def test_voter_scope_comes_from_the_active_enrollment(self) -> None:
        scope = voter_scope(self.student)

        self.assertIsNotNone(scope)
        self.assertEqual(scope.group_id, self.school.groups["6A"].pk)
        self.assertEqual(scope.grade_id, self.school.grades["Sexto"].pk)
        self.assertEqual(scope.institution_id, self.school.institution.pk)

    def test_student_sees_institution_wide_grade_and_group_elections(self) -> None:
        elections = eligible_elections(self.student, self.school.institution)

        self.assertEqual(
            {(e.office, e.grade_id, e.group_id) for e in elections},
            {
                (Office.personero, None, None),
                (Office.contralor, None, None),
                (Office.grade_representative, self.school.grades["Sexto"].pk, None),
                (Office.group_representative, None, self.school.groups["6A"].pk),
            },
        )

    def test_other_grade_and_group_are_not_eligible(self) -> None:
        other_group = election_for(self.process, Office.group_representative, group=self.school.groups["6B"])
        other_grade = election_for(self.process, Office.grade_representative, grade=self.school.grades["Septimo"])

        self.assertFalse(is_eligible_for_election(self.student, other_group))
        self.assertFalse(is_eligible_for_election(self.student, other_grade))

    def test_pending_excludes_elections_already_voted(self) -> None:
        personero = election_for(self.process, Office.personero)
        elections_services.cast_vote(election=personero, voter=self.student)

        pending = pending_elections(self.student, self.school.institution.pk)

        self.assertEqual(len(pending), 3)
        self.assertNotIn(personero.pk, [e.pk for e in pending])
        self.assertFalse(has_completed_voting(self.student, self.school.institution))

    def test_completed_after_voting_everywhere(self) -> None:
        for election in eligible_elections(self.student, self.school.institution):
            elections_services.cast_vote(election=election, voter=self.student)

        self.assertEqual(pending_elections(self.student, self.school.institution), [])
        self.assertTrue(has_completed_voting(self.student, self.school.institution))

    def test_student_without_active_enrollment_has_nothing_pending(self) -> None:
        unenrolled = Student.objects.create(institution=self.school.institution, first_name="Luis", last_name="Gomez")

        self.assertEqual(pending_elections(unenrolled, self.school.institution), [])
        self.assertTrue(has_completed_voting(unenrolled, self.school.institution))

    def test_withdrawn_enrollment_is_not_active(self) -> None:
        Enrollment.objects.filter(student=self.student).update(status=Enrollment.Status.withdrawn)

        self.assertIsNone(voter_scope(self.student))
        self.assertEqual(eligible_elections(self.student, self.school.institution), [])

    def test_nothing_is_eligible_outside_voting(self) -> None:
        elections_services.cancel_process(process=self.process)

        self.assertEqual(eligible_elections(self.student, self.school.institution), [])
        self.assertTrue(has_completed_voting(self.student, self.school.institution))

    def test_students_of_another_institution_are_not_eligible(self) -> None:
        other_school = create_school(name="Colegio Vecino", layout={"Sexto": ("6A",)})
        outsider = enroll_student(other_school, "6A", first_name="Pedro")
        personero = election_for(self.process, Office.personero)

        self.assertFalse(is_eligible_for_election(outsider, personero))
        self.assertEqual(eligible_elections(outsider, self.school.institution), [])
