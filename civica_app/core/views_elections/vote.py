"""Voting endpoints: pending ballots, vote submission and completion status."""

import logging

from django.http import HttpRequest, JsonResponse
from django.views.decorators.http import require_GET, require_POST

from core import elections_eligibility, elections_services
from core.elections_services import ElectionError
from core.models import Candidate
from core.views_elections._helpers import _candidate_payload, _election_payload
from core.views_utils import (
    InvalidPayloadError,
    election_error_response,
    get_student,
    json_error,
    parse_optional_int,
    parse_request_data,
    parse_required_int,
)

logger = logging.getLogger(__name__)


def _institution_for(request: HttpRequest, student) -> int | None:
    institution_id = parse_optional_int(request.GET.get("institution_id"), field="institution_id")
    if institution_id is None and student is not None:
        institution_id = student.institution_id
    return institution_id


@require_GET
def voting_pending(request: HttpRequest) -> JsonResponse:
    """Elections the caller can still vote in, each with its approved ballot."""
    student = get_student(request)
    if student is None:
        # Staff accounts without a student record have no ballots.
        return JsonResponse({"ok": True, "elections": []})

    try:
        institution_id = _institution_for(request, student)
    except InvalidPayloadError as exc:
        return json_error(str(exc))

    elections = elections_eligibility.pending_elections(student, institution_id)
    ballots: dict[int, list[dict[str, object]]] = {}
    approved = (
        Candidate.objects.filter(
            election_id__in=[e.pk for e in elections],
            status=Candidate.Status.approved,
        )
        .select_related("student")
        .order_by("ballot_number", "created_at", "id")
    )
    for candidate in approved:
        ballots.setdefault(candidate.election_id, []).append(_candidate_payload(candidate))

    return JsonResponse(
        {
            "ok": True,
            "elections": [
                {
                    **_election_payload(e),
                    "allow_blank_vote": e.process.allow_blank_vote,
                    "candidates": ballots.get(e.pk, []),
                }
                for e in elections
            ],
        }
    )


@require_POST
def vote_submit(request: HttpRequest) -> JsonResponse:
    student = get_student(request)
    if student is None:
        return json_error("Only students can vote.", status=403)

    try:
        data, _files = parse_request_data(request)
        election_id = parse_required_int(data.get("election_id"), field="election_id")
        candidate_id = parse_optional_int(data.get("candidate_id"), field="candidate_id")
    except InvalidPayloadError as exc:
        return json_error(str(exc))

    try:
        vote = elections_services.cast_vote(election=election_id, voter=student, candidate_id=candidate_id)
    except ElectionError as exc:
        return election_error_response(exc)

    return JsonResponse(
        {"ok": True, "vote": {"id": vote.pk, "election_id": vote.election_id, "created_at": vote.created_at}},
        status=201,
    )


@require_GET
def voting_completed(request: HttpRequest) -> JsonResponse:
    student = get_student(request)
    if student is None:
        return JsonResponse({"ok": True, "completed": True})

    try:
        institution_id = _institution_for(request, student)
    except InvalidPayloadError as exc:
        return json_error(str(exc))

    completed = elections_eligibility.has_completed_voting(student, institution_id)
    return JsonResponse({"ok": True, "completed": completed})
