"""Election process endpoints: create, inspect, reconfigure and move through phases."""

import logging

from django.http import HttpRequest, JsonResponse
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from core import elections_services
from core.elections_services import ElectionError
from core.forms_elections import ElectionProcessConfigurationForm, ElectionProcessCreateForm
from core.models import AcademicYear, Candidate, Election, ElectionProcess, Institution
from core.permissions import (
    CIVICA_MANAGE_ELECTIONS,
    ELECTION_RESULTS_PERMISSIONS,
    can_manage_elections,
    can_view_election_results,
    json_permission_required,
    json_permission_required_any,
)
from core.views_elections._helpers import (
    _candidate_payload,
    _election_payload,
    _get_process,
    _process_payload,
)
from core.views_utils import (
    InvalidPayloadError,
    election_error_response,
    form_error_response,
    get_student,
    get_username,
    json_error,
    parse_optional_int,
    parse_request_data,
)

logger = logging.getLogger(__name__)


def _institution_id_from_query(request: HttpRequest) -> int | None:
    institution_id = parse_optional_int(request.GET.get("institution_id"), field="institution_id")
    if institution_id is None:
        student = get_student(request)
        if student is not None:
            institution_id = student.institution_id
    return institution_id


def _create_process(request: HttpRequest) -> JsonResponse:
    if not can_manage_elections(request.user):
        return json_error("Permission denied.", status=403)

    try:
        data, _files = parse_request_data(request)
    except InvalidPayloadError as exc:
        return json_error(str(exc))

    form = ElectionProcessCreateForm(data)
    if not form.is_valid():
        return form_error_response(form)

    institution = Institution.objects.filter(pk=form.cleaned_data["institution_id"]).first()
    if institution is None:
        return json_error("Institution not found.", status=404)
    academic_year = AcademicYear.objects.filter(pk=form.cleaned_data["academic_year_id"]).first()
    if academic_year is None:
        return json_error("Academic year not found.", status=404)

    try:
        process = elections_services.create_process(
            institution=institution,
            academic_year=academic_year,
            config=form.changes(),
            created_by=request.user,
            actor=get_username(request),
        )
    except ElectionError as exc:
        return election_error_response(exc)

    elections = Election.objects.filter(process=process).select_related("grade", "group__grade").order_by("id")
    return JsonResponse(
        {
            "ok": True,
            "process": _process_payload(process),
            "elections": [_election_payload(e) for e in elections],
        },
        status=201,
    )


@require_http_methods(["GET", "POST"])
def election_processes(request: HttpRequest) -> JsonResponse:
    if request.method == "POST":
        return _create_process(request)

    if not can_view_election_results(request.user):
        return json_error("Permission denied.", status=403)

    qs = ElectionProcess.objects.select_related("academic_year").order_by("-academic_year__year", "-id")
    try:
        institution_id = parse_optional_int(request.GET.get("institution_id"), field="institution_id")
    except InvalidPayloadError as exc:
        return json_error(str(exc))
    if institution_id is not None:
        qs = qs.filter(institution_id=institution_id)

    return JsonResponse({"ok": True, "processes": [_process_payload(p) for p in qs]})


@require_GET
def election_process_current(request: HttpRequest) -> JsonResponse:
    """The institution's open process with its elections and approved candidates."""
    try:
        institution_id = _institution_id_from_query(request)
    except InvalidPayloadError as exc:
        return json_error(str(exc))
    if institution_id is None:
        return json_error("institution_id is required.")

    process = elections_services.get_current_process(institution_id)
    if process is None:
        return JsonResponse({"ok": True, "process": None})

    candidates_by_election: dict[int, list[dict[str, object]]] = {}
    approved = (
        Candidate.objects.filter(election__process=process, status=Candidate.Status.approved)
        .select_related("student")
        .order_by("created_at", "id")
    )
    for candidate in approved:
        candidates_by_election.setdefault(candidate.election_id, []).append(_candidate_payload(candidate))

    elections = Election.objects.filter(process=process).select_related("grade", "group__grade").order_by("id")
    return JsonResponse(
        {
            "ok": True,
            "process": _process_payload(process),
            "elections": [
                {**_election_payload(e), "candidates": candidates_by_election.get(e.pk, [])} for e in elections
            ],
        }
    )


@require_GET
@json_permission_required_any(ELECTION_RESULTS_PERMISSIONS)
def election_process_detail(request: HttpRequest, process_id: int) -> JsonResponse:
    try:
        process = _get_process(process_id)
    except ElectionError as exc:
        return election_error_response(exc)

    elections = Election.objects.filter(process=process).select_related("grade", "group__grade").order_by("id")
    return JsonResponse(
        {
            "ok": True,
            "process": _process_payload(process),
            "elections": [_election_payload(e) for e in elections],
        }
    )


@require_POST
@json_permission_required(CIVICA_MANAGE_ELECTIONS)
def election_process_configuration(request: HttpRequest, process_id: int) -> JsonResponse:
    try:
        process = _get_process(process_id)
        data, _files = parse_request_data(request)
    except ElectionError as exc:
        return election_error_response(exc)
    except InvalidPayloadError as exc:
        return json_error(str(exc))

    form = ElectionProcessConfigurationForm(data)
    if not form.is_valid():
        return form_error_response(form)

    try:
        process = elections_services.update_process_configuration(
            process=process,
            changes=form.changes(),
            actor=get_username(request),
        )
    except ElectionError as exc:
        return election_error_response(exc)

    return JsonResponse({"ok": True, "process": _process_payload(process)})


@require_POST
@json_permission_required(CIVICA_MANAGE_ELECTIONS)
def election_process_phase(request: HttpRequest, process_id: int) -> JsonResponse:
    try:
        process = _get_process(process_id)
        data, _files = parse_request_data(request)
    except ElectionError as exc:
        return election_error_response(exc)
    except InvalidPayloadError as exc:
        return json_error(str(exc))

    target_phase = str(data.get("phase") or "").strip()
    if not target_phase:
        return json_error("phase is required.")

    try:
        process = elections_services.advance_process(
            process=process,
            target_phase=target_phase,
            actor=get_username(request),
        )
    except ElectionError as exc:
        return election_error_response(exc)

    return JsonResponse({"ok": True, "process": _process_payload(process)})


@require_POST
@json_permission_required(CIVICA_MANAGE_ELECTIONS)
def election_process_cancel(request: HttpRequest, process_id: int) -> JsonResponse:
    try:
        process = _get_process(process_id)
        process = elections_services.cancel_process(process=process, actor=get_username(request))
    except ElectionError as exc:
        return election_error_response(exc)

    return JsonResponse({"ok": True, "process": _process_payload(process)})


@require_POST
@json_permission_required(CIVICA_MANAGE_ELECTIONS)
def election_process_close(request: HttpRequest, process_id: int) -> JsonResponse:
    try:
        process = _get_process(process_id)
        process = elections_services.close_process(process=process, actor=get_username(request))
    except ElectionError as exc:
        return election_error_response(exc)

    return JsonResponse({"ok": True, "process": _process_payload(process)})
