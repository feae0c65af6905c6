from __future__ import annotations

from dataclasses import dataclass

from django.db.models import Count

from core.models import Election, ElectionProcess, Enrollment, Grade, Vote


@dataclass(frozen=True)
class ElectionVoteSummary:
    election_id: int
    office: str
    office_label: str
    scope_label: str
    total_votes: int
    total_candidates: int


@dataclass(frozen=True)
class VotingStats:
    total_students: int
    total_voters: int
    participation_rate: float
    elections: tuple[ElectionVoteSummary, ...]


@dataclass(frozen=True)
class GradeParticipation:
    grade_id: int
    grade_name: str
    total_students: int
    voters: int
    participation_rate: float


def _rate(part: int, whole: int) -> float:
    return (part * 100.0 / whole) if whole > 0 else 0.0


def _active_enrollments(process: ElectionProcess):
    return Enrollment.objects.active().filter(group__grade__institution_id=process.institution_id)


def voting_stats(process: ElectionProcess) -> VotingStats:
    total_students = _active_enrollments(process).values("student_id").distinct().count()
    total_voters = Vote.objects.for_process(process).values("voter_id").distinct().count()

    elections = (
        Election.objects.filter(process=process)
        .select_related("grade", "group__grade")
        .annotate(
            total_votes=Count("votes", distinct=True),
            total_candidates=Count("candidates", distinct=True),
        )
        .order_by("id")
    )

    return VotingStats(
        total_students=total_students,
        total_voters=total_voters,
        participation_rate=_rate(total_voters, total_students),
        elections=tuple(
            ElectionVoteSummary(
                election_id=e.pk,
                office=e.office,
                office_label=e.get_office_display(),
                scope_label=e.scope_label,
                total_votes=int(e.total_votes),
                total_candidates=int(e.total_candidates),
            )
            for e in elections
        ),
    )


def participation_by_grade(process: ElectionProcess) -> list[GradeParticipation]:
    """Participation per grade; grades without enrolled students are left out.

    Voters are attributed to the grade of their active enrollment.
    """
    enrollments = _active_enrollments(process)
    students_by_grade = dict(
        enrollments.values_list("group__grade_id").annotate(n=Count("student_id", distinct=True)).order_by()
    )

    voter_ids = Vote.objects.for_process(process).values("voter_id")
    voters_by_grade = dict(
        enrollments.filter(student_id__in=voter_ids)
        .values_list("group__grade_id")
        .annotate(n=Count("student_id", distinct=True))
        .order_by()
    )

    rows: list[GradeParticipation] = []
    for grade in Grade.objects.filter(institution_id=process.institution_id).order_by("ordinal", "name", "id"):
        total = int(students_by_grade.get(grade.pk, 0))
        if total == 0:
            continue
        voters = int(voters_by_grade.get(grade.pk, 0))
        rows.append(
            GradeParticipation(
                grade_id=grade.pk,
                grade_name=grade.name,
                total_students=total,
                voters=voters,
                participation_rate=_rate(voters, total),
            )
        )
    return rows
