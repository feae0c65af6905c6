"""Candidacy endpoints: registration, listing and the approve/reject workflow."""

import logging

from django.http import HttpRequest, JsonResponse
from django.views.decorators.http import require_GET, require_POST

from core import elections_services
from core.elections_services import ElectionError
from core.forms_elections import CandidateRegistrationForm
from core.models import Student
from core.permissions import CIVICA_MANAGE_ELECTIONS, can_manage_elections, json_permission_required
from core.views_elections._helpers import _candidate_payload, _get_election
from core.views_utils import (
    InvalidPayloadError,
    election_error_response,
    form_error_response,
    get_student,
    get_username,
    json_error,
    parse_request_data,
)

logger = logging.getLogger(__name__)


@require_POST
def candidate_register(request: HttpRequest) -> JsonResponse:
    """Register a candidacy.

    Managers may register any student; a student account may only register
    itself, and ``student_id`` defaults to the caller's own record.
    """
    try:
        data, files = parse_request_data(request)
    except InvalidPayloadError as exc:
        return json_error(str(exc))

    form = CandidateRegistrationForm(data, files)
    if not form.is_valid():
        return form_error_response(form)

    is_manager = can_manage_elections(request.user)
    caller_student = get_student(request)
    student_id = form.cleaned_data.get("student_id")

    if is_manager:
        if student_id is None:
            if caller_student is None:
                return json_error("student_id is required.")
            student_id = caller_student.pk
    else:
        if caller_student is None:
            return json_error("Permission denied.", status=403)
        if student_id is not None and student_id != caller_student.pk:
            return json_error("Students may only register their own candidacy.", status=403)
        student_id = caller_student.pk

    student = Student.objects.filter(pk=student_id).first()
    if student is None:
        return json_error("Student not found.", status=404)

    try:
        election = _get_election(form.cleaned_data["election_id"])
        candidate = elections_services.register_candidate(
            election=election,
            student=student,
            slogan=form.cleaned_data.get("slogan") or "",
            proposals=form.cleaned_data.get("proposals") or "",
            photo=form.cleaned_data.get("photo"),
            color=form.cleaned_data.get("color") or "",
            ballot_number=form.cleaned_data.get("ballot_number"),
            actor=get_username(request),
        )
    except ElectionError as exc:
        return election_error_response(exc)

    return JsonResponse({"ok": True, "candidate": _candidate_payload(candidate)}, status=201)


@require_GET
def election_candidates(request: HttpRequest, election_id: int) -> JsonResponse:
    try:
        election = _get_election(election_id)
    except ElectionError as exc:
        return election_error_response(exc)

    # Pending and rejected candidacies are only visible to coordinators.
    approved_only = not can_manage_elections(request.user)
    candidates = elections_services.list_candidates(election=election, approved_only=approved_only)
    return JsonResponse({"ok": True, "candidates": [_candidate_payload(c) for c in candidates]})


@require_POST
@json_permission_required(CIVICA_MANAGE_ELECTIONS)
def candidate_approve(request: HttpRequest, candidate_id: int) -> JsonResponse:
    try:
        candidate = elections_services.approve_candidate(
            candidate=candidate_id,
            decided_by=request.user,
            actor=get_username(request),
        )
    except ElectionError as exc:
        return election_error_response(exc)

    return JsonResponse({"ok": True, "candidate": _candidate_payload(candidate)})


@require_POST
@json_permission_required(CIVICA_MANAGE_ELECTIONS)
def candidate_reject(request: HttpRequest, candidate_id: int) -> JsonResponse:
    try:
        data, _files = parse_request_data(request)
    except InvalidPayloadError as exc:
        return json_error(str(exc))

    try:
        candidate = elections_services.reject_candidate(
            candidate=candidate_id,
            reason=str(data.get("reason") or ""),
            decided_by=request.user,
            actor=get_username(request),
        )
    except ElectionError as exc:
        return election_error_response(exc)

    return JsonResponse({"ok": True, "candidate": _candidate_payload(candidate)})
