"""Read-only endpoints over tabulated results and participation."""

from dataclasses import asdict

from django.http import HttpRequest, JsonResponse
from django.views.decorators.http import require_GET

from core import elections_services, elections_stats
from core.elections_services import ElectionError
from core.permissions import (
    CIVICA_MANAGE_ELECTIONS,
    ELECTION_RESULTS_PERMISSIONS,
    json_permission_required,
    json_permission_required_any,
)
from core.views_elections._helpers import _election_results_payload, _get_election, _get_process, _process_payload
from core.views_utils import election_error_response


@require_GET
@json_permission_required_any(ELECTION_RESULTS_PERMISSIONS)
def election_results(request: HttpRequest, election_id: int) -> JsonResponse:
    try:
        election = _get_election(election_id)
    except ElectionError as exc:
        return election_error_response(exc)

    results = elections_services.results_for_election(election)
    return JsonResponse({"ok": True, **_election_results_payload(results)})


@require_GET
@json_permission_required_any(ELECTION_RESULTS_PERMISSIONS)
def process_results(request: HttpRequest, process_id: int) -> JsonResponse:
    try:
        process = _get_process(process_id)
    except ElectionError as exc:
        return election_error_response(exc)

    return JsonResponse(
        {
            "ok": True,
            "process": _process_payload(process),
            "elections": [
                _election_results_payload(results) for results in elections_services.results_for_process(process)
            ],
        }
    )


@require_GET
@json_permission_required(CIVICA_MANAGE_ELECTIONS)
def process_stats(request: HttpRequest, process_id: int) -> JsonResponse:
    try:
        process = _get_process(process_id)
    except ElectionError as exc:
        return election_error_response(exc)

    stats = elections_stats.voting_stats(process)
    return JsonResponse(
        {
            "ok": True,
            "process_id": process.pk,
            "stats": asdict(stats),
            "grades": [asdict(row) for row in elections_stats.participation_by_grade(process)],
        }
    )
