"""Document downloads built from stored results."""

import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.http import require_GET

from core import elections_reports
from core.elections_reports import RenderedReport, ReportRenderingError
from core.elections_services import ElectionError
from core.permissions import CIVICA_MANAGE_ELECTIONS, json_permission_required
from core.views_elections._helpers import _get_election, _get_process
from core.views_utils import election_error_response, json_error

logger = logging.getLogger(__name__)

GENERIC_REPORT_ERROR = "The document could not be generated. Please try again later."


def _download(report: RenderedReport) -> HttpResponse:
    response = HttpResponse(report.content, content_type=report.content_type)
    response["Content-Disposition"] = f'attachment; filename="{report.filename}"'
    return response


def _process_report(process_id: int, builder) -> HttpResponse:
    try:
        process = _get_process(process_id)
    except ElectionError as exc:
        return election_error_response(exc)

    try:
        report = builder(process)
    except ReportRenderingError:
        logger.exception("Report generation failed process_id=%s builder=%s", process_id, builder.__name__)
        return json_error(GENERIC_REPORT_ERROR, status=500)
    return _download(report)


@require_GET
@json_permission_required(CIVICA_MANAGE_ELECTIONS)
def process_certificate_pdf(request: HttpRequest, process_id: int) -> HttpResponse:
    return _process_report(process_id, elections_reports.build_certificate_pdf)


@require_GET
@json_permission_required(CIVICA_MANAGE_ELECTIONS)
def process_participation_pdf(request: HttpRequest, process_id: int) -> HttpResponse:
    return _process_report(process_id, elections_reports.build_participation_pdf)


@require_GET
@json_permission_required(CIVICA_MANAGE_ELECTIONS)
def process_results_xlsx(request: HttpRequest, process_id: int) -> HttpResponse:
    return _process_report(process_id, elections_reports.build_results_workbook)


@require_GET
@json_permission_required(CIVICA_MANAGE_ELECTIONS)
def election_results_pdf(request: HttpRequest, election_id: int) -> HttpResponse:
    try:
        election = _get_election(election_id)
    except ElectionError as exc:
        return election_error_response(exc)

    try:
        report = elections_reports.build_election_results_pdf(election)
    except ReportRenderingError:
        logger.exception("Report generation failed election_id=%s", election_id)
        return json_error(GENERIC_REPORT_ERROR, status=500)
    return _download(report)
