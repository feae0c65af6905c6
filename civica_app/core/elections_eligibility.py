import logging
from dataclasses import dataclass

from django.db.models import Q

from core.models import Election, ElectionProcess, Enrollment, Institution, Student, Vote

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoterScope:
    """Where a student sits today, taken from their active enrollment."""

    student_id: int
    institution_id: int
    grade_id: int
    group_id: int


def current_enrollment(student: Student) -> Enrollment | None:
    return (
        Enrollment.objects.active()
        .select_related("group__grade")
        .filter(student=student)
        .order_by("-created_at", "-id")
        .first()
    )


def voter_scope(student: Student) -> VoterScope | None:
    enrollment = current_enrollment(student)
    if enrollment is None:
        return None
    return VoterScope(
        student_id=student.pk,
        institution_id=enrollment.group.grade.institution_id,
        grade_id=enrollment.group.grade_id,
        group_id=enrollment.group_id,
    )


def voting_process_for_institution(institution: Institution | int) -> ElectionProcess | None:
    """Return the institution's process currently accepting votes, if any."""
    institution_id = institution if isinstance(institution, int) else institution.pk
    return (
        ElectionProcess.objects.voting()
        .filter(institution_id=institution_id)
        .select_related("academic_year")
        .order_by("-academic_year__year", "-id")
        .first()
    )


def _scope_filter(scope: VoterScope) -> Q:
    return (
        Q(office__in=list(Election.INSTITUTION_WIDE_OFFICES))
        | Q(office=Election.Office.grade_representative, grade_id=scope.grade_id)
        | Q(office=Election.Office.group_representative, group_id=scope.group_id)
    )


def _scope_matches_election(*, scope: VoterScope, election: Election) -> bool:
    if election.is_institution_wide:
        return True
    if election.office == Election.Office.grade_representative:
        return election.grade_id == scope.grade_id
    if election.office == Election.Office.group_representative:
        return election.group_id == scope.group_id
    return False


def is_eligible_for_election(student: Student, election: Election) -> bool:
    """Whether ``student`` belongs to the electorate of ``election``.

    Independent of the process phase: the ballot box checks the phase itself,
    and candidacy registration uses this to require voter-eligible candidates.
    """
    scope = voter_scope(student)
    if scope is None:
        return False

    process_institution_id = (
        ElectionProcess.objects.filter(pk=election.process_id).values_list("institution_id", flat=True).first()
    )
    if process_institution_id != scope.institution_id:
        return False

    return _scope_matches_election(scope=scope, election=election)


def eligible_elections(student: Student, institution: Institution | int) -> list[Election]:
    scope = voter_scope(student)
    if scope is None:
        return []

    process = voting_process_for_institution(institution)
    if process is None:
        return []
    if process.institution_id != scope.institution_id:
        return []

    return list(
        Election.objects.active()
        .filter(process=process)
        .filter(_scope_filter(scope))
        .select_related("process", "grade", "group__grade")
        .order_by("id")
    )


def pending_elections(student: Student, institution: Institution | int) -> list[Election]:
    eligible = eligible_elections(student, institution)
    if not eligible:
        return []

    voted_ids = set(
        Vote.objects.filter(voter=student, election_id__in=[e.pk for e in eligible]).values_list(
            "election_id",
            flat=True,
        )
    )
    return [e for e in eligible if e.pk not in voted_ids]


def has_completed_voting(student: Student, institution: Institution | int) -> bool:
    """True when nothing is left to vote on.

    A student with no active enrollment (or an institution with no open
    voting) has nothing pending, so this is True for them as well.
    """
    return not pending_elections(student, institution)
