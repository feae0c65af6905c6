"""Printable election documents.

Reports only lay out results that closing a process already stored, plus the
participation aggregates from ``elections_stats``; nothing here counts votes.
PDF conversion goes through WeasyPrint and spreadsheets through openpyxl.
Any rendering problem surfaces as ``ReportRenderingError`` and never touches
stored results.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO

from django.conf import settings
from django.template.loader import render_to_string
from django.utils import timezone
from openpyxl import Workbook
from openpyxl.styles import Font

from core.elections_services import ElectionResults, results_for_election, results_for_process
from core.elections_stats import participation_by_grade, voting_stats
from core.elections_tally import format_percentage
from core.models import Election, ElectionProcess, ElectionResult

logger = logging.getLogger(__name__)

BLANK_VOTE_LABEL = "Blank vote"
CERTIFICATE_ROWS_PER_ELECTION = 3
CHART_ROWS = 5

PDF_CONTENT_TYPE = "application/pdf"
XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class ReportRenderingError(Exception):
    pass


@dataclass(frozen=True)
class RenderedReport:
    content: bytes
    content_type: str
    filename: str


@dataclass(frozen=True)
class ResultLine:
    position: int
    label: str
    slogan: str
    votes: int
    percentage: str
    is_winner: bool
    is_blank: bool
    bar_width: float


def _decimals() -> int:
    return int(settings.ELECTION_RESULTS_DISPLAY_DECIMALS)


def _safe_filename_part(value: str) -> str:
    return value.replace('"', "").replace(",", "").replace(" ", "_")


def _row_label(row: ElectionResult) -> str:
    if row.candidate is None:
        return BLANK_VOTE_LABEL
    return row.candidate.student.full_name


def result_lines(rows: tuple[ElectionResult, ...], *, limit: int | None = None) -> list[ResultLine]:
    selected = rows[:limit] if limit is not None else rows
    top_votes = max((r.votes for r in rows), default=0)
    return [
        ResultLine(
            position=row.position,
            label=_row_label(row),
            slogan=row.candidate.slogan if row.candidate is not None else "",
            votes=row.votes,
            percentage=format_percentage(row.percentage, decimals=_decimals()),
            is_winner=row.is_winner,
            is_blank=row.candidate is None,
            bar_width=(row.votes / top_votes * 100.0) if top_votes else 0.0,
        )
        for row in selected
    ]


def _election_section(results: ElectionResults, *, limit: int | None) -> dict[str, object]:
    winner = results.winner
    return {
        "election": results.election,
        "scope_label": results.election.scope_label,
        "total_votes": results.total_votes,
        "lines": result_lines(results.rows, limit=limit),
        "winner_name": _row_label(winner) if winner is not None else "",
    }


def _base_context(process: ElectionProcess) -> dict[str, object]:
    return {
        "process": process,
        "institution": process.institution,
        "academic_year": process.academic_year,
        "logo_url": settings.ELECTION_REPORT_INSTITUTION_LOGO_URL,
        "generated_at": timezone.now(),
    }


def _participation_context(process: ElectionProcess) -> dict[str, object]:
    stats = voting_stats(process)
    grades = participation_by_grade(process)
    return {
        "stats": stats,
        "participation_rate": format_percentage(stats.participation_rate, decimals=_decimals()),
        "grades": [
            {
                "name": g.grade_name,
                "total_students": g.total_students,
                "voters": g.voters,
                "participation_rate": format_percentage(g.participation_rate, decimals=_decimals()),
            }
            for g in grades
        ],
    }


def certificate_context(process: ElectionProcess) -> dict[str, object]:
    sections: list[dict[str, object]] = []
    by_office: dict[str, dict[str, object]] = {}
    for results in results_for_process(process):
        office = results.election.office
        if office not in by_office:
            by_office[office] = {
                "office_label": results.election.get_office_display(),
                "elections": [],
            }
            sections.append(by_office[office])
        by_office[office]["elections"].append(
            _election_section(results, limit=CERTIFICATE_ROWS_PER_ELECTION),
        )

    return {
        **_base_context(process),
        **_participation_context(process),
        "sections": sections,
    }


def participation_context(process: ElectionProcess) -> dict[str, object]:
    return {**_base_context(process), **_participation_context(process)}


def election_results_context(election: Election) -> dict[str, object]:
    results = results_for_election(election)
    section = _election_section(results, limit=None)
    return {
        **_base_context(election.process),
        **section,
        "chart_lines": result_lines(results.rows, limit=CHART_ROWS),
    }


def render_pdf_bytes_from_html(*, html: str, base_url: str) -> bytes:
    try:
        from weasyprint import HTML  # noqa: PLC0415
    except (ImportError, OSError) as exc:
        # OSError: WeasyPrint is installed but its native libraries are not.
        raise ReportRenderingError("The PDF engine is not available.") from exc

    try:
        pdf_bytes = HTML(string=html, base_url=base_url).write_pdf()
    except Exception as exc:
        raise ReportRenderingError("The PDF document could not be generated.") from exc

    if not pdf_bytes:
        raise ReportRenderingError("The PDF document could not be generated.")
    return pdf_bytes


def _render_pdf(*, template_name: str, context: dict[str, object], filename: str) -> RenderedReport:
    try:
        html = render_to_string(template_name, context)
    except Exception as exc:
        logger.exception("Rendering report template %s failed", template_name)
        raise ReportRenderingError("The document could not be generated.") from exc

    pdf_bytes = render_pdf_bytes_from_html(html=html, base_url=str(settings.BASE_DIR))
    return RenderedReport(content=pdf_bytes, content_type=PDF_CONTENT_TYPE, filename=filename)


def build_certificate_pdf(process: ElectionProcess) -> RenderedReport:
    return _render_pdf(
        template_name="core/reports/certificate.html",
        context=certificate_context(process),
        filename=f"tally_certificate_{_safe_filename_part(process.name)}_{process.pk}.pdf",
    )


def build_participation_pdf(process: ElectionProcess) -> RenderedReport:
    return _render_pdf(
        template_name="core/reports/participation.html",
        context=participation_context(process),
        filename=f"participation_{_safe_filename_part(process.name)}_{process.pk}.pdf",
    )


def build_election_results_pdf(election: Election) -> RenderedReport:
    return _render_pdf(
        template_name="core/reports/election_results.html",
        context=election_results_context(election),
        filename=f"results_election_{election.pk}.pdf",
    )


def build_results_workbook(process: ElectionProcess) -> RenderedReport:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Results"

    sheet.append(["Process", process.name])
    sheet.append(["Institution", process.institution.name])
    sheet.append(["Academic year", process.academic_year.year])
    sheet.append(["Phase", process.get_phase_display()])
    sheet.append([])
    header = ["Office", "Scope", "Position", "Candidate", "Votes", "Percentage", "Winner"]
    sheet.append(header)
    for cell in sheet[sheet.max_row]:
        cell.font = Font(bold=True)

    for results in results_for_process(process):
        election = results.election
        for row in results.rows:
            sheet.append(
                [
                    election.get_office_display(),
                    election.scope_label,
                    row.position,
                    _row_label(row),
                    row.votes,
                    round(row.percentage, _decimals()),
                    "yes" if row.is_winner else "",
                ]
            )

    output = BytesIO()
    try:
        workbook.save(output)
    except Exception as exc:
        raise ReportRenderingError("The spreadsheet could not be generated.") from exc

    return RenderedReport(
        content=output.getvalue(),
        content_type=XLSX_CONTENT_TYPE,
        filename=f"results_{_safe_filename_part(process.name)}_{process.pk}.xlsx",
    )
