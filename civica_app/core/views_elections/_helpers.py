"""Shared private helpers used across election view sub-modules."""

from core.elections_services import PROCESS_WINDOW_FIELDS, ElectionNotFoundError, ElectionResults
from core.models import Candidate, Election, ElectionProcess, ElectionResult


def _get_process(process_id: int) -> ElectionProcess:
    process = (
        ElectionProcess.objects.select_related("institution", "academic_year")
        .filter(pk=process_id)
        .first()
    )
    if process is None:
        raise ElectionNotFoundError("Election process not found.")
    return process


def _get_election(election_id: int) -> Election:
    election = (
        Election.objects.select_related("process", "grade", "group__grade")
        .filter(pk=election_id)
        .first()
    )
    if election is None:
        raise ElectionNotFoundError("Election not found.")
    return election


def _process_payload(process: ElectionProcess) -> dict[str, object]:
    return {
        "id": process.pk,
        "institution_id": process.institution_id,
        "academic_year_id": process.academic_year_id,
        "academic_year": process.academic_year.year,
        "name": process.name,
        "description": process.description,
        "phase": process.phase,
        "phase_label": process.get_phase_display(),
        "allow_blank_vote": process.allow_blank_vote,
        "offices": {
            "personero": process.enable_personero,
            "contralor": process.enable_contralor,
            "grade_representative": process.enable_grade_representative,
            "group_representative": process.enable_group_representative,
        },
        "windows": {key: getattr(process, key) for key in PROCESS_WINDOW_FIELDS},
        "closed_at": process.closed_at,
        "created_at": process.created_at,
    }


def _election_payload(election: Election) -> dict[str, object]:
    return {
        "id": election.pk,
        "process_id": election.process_id,
        "office": election.office,
        "office_label": election.get_office_display(),
        "scope_label": election.scope_label,
        "grade_id": election.grade_id,
        "group_id": election.group_id,
        "status": election.status,
        "tabulated_at": election.tabulated_at,
    }


def _candidate_payload(candidate: Candidate) -> dict[str, object]:
    return {
        "id": candidate.pk,
        "election_id": candidate.election_id,
        "student_id": candidate.student_id,
        "name": candidate.student.full_name,
        "slogan": candidate.slogan,
        "proposals": candidate.proposals,
        "photo_url": candidate.photo.url if candidate.photo else "",
        "color": candidate.color,
        "ballot_number": candidate.ballot_number,
        "status": candidate.status,
        "rejection_reason": candidate.rejection_reason,
        "decided_at": candidate.decided_at,
        "created_at": candidate.created_at,
    }


def _result_payload(row: ElectionResult) -> dict[str, object]:
    return {
        "position": row.position,
        "candidate_id": row.candidate_id,
        "candidate_name": row.candidate.student.full_name if row.candidate is not None else None,
        "is_blank": row.candidate_id is None,
        "votes": row.votes,
        "percentage": row.percentage,
        "is_winner": row.is_winner,
        "computed_at": row.computed_at,
    }


def _election_results_payload(results: ElectionResults) -> dict[str, object]:
    return {
        "election": _election_payload(results.election),
        "total_votes": results.total_votes,
        "results": [_result_payload(row) for row in results.rows],
    }
