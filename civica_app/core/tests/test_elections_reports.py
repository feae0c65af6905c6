from __future__ import annotations

from io import BytesIO
from unittest.mock import patch

from django.test import TestCase, override_settings
from openpyxl import load_workbook

from core import elections_reports, elections_services
from core.elections_reports import ReportRenderingError
from core.models import Election, ElectionProcess, ElectionResult
from core.tests.utils_test_data import (
    advance_to,
    approved_candidate,
    create_process,
    create_school,
    election_for,
    enroll_student,
)

Office = Election.Office
Phase = ElectionProcess.Phase


@override_settings(ELECTION_RESULTS_DISPLAY_DECIMALS=1)
class ElectionReportsTests(TestCase):
    def setUp(self) -> None:
        self.school = create_school(layout={"Sexto": ("6A",)})
        process = create_process(
            self.school,
            enable_contralor=False,
            enable_grade_representative=False,
            enable_group_representative=False,
        )
        process = advance_to(process, Phase.registration)
        self.personero = election_for(process, Office.personero)
        self.ana = approved_candidate(
            self.personero,
            enroll_student(self.school, "6A", first_name="Ana", last_name="Rojas"),
            slogan="Todos cuentan",
        )
        self.beto = approved_candidate(
            self.personero,
            enroll_student(self.school, "6A", first_name="Beto", last_name="Diaz"),
        )
        process = advance_to(process, Phase.voting)
        for i, candidate in enumerate((self.ana, self.ana, self.beto, None)):
            elections_services.cast_vote(
                election=self.personero,
                voter=enroll_student(self.school, "6A", first_name=f"Votante{i}"),
                candidate_id=candidate.pk if candidate is not None else None,
            )
        self.process = elections_services.close_process(process=process)

    def test_result_lines_format_stored_rows(self) -> None:
        results = elections_services.results_for_election(self.personero)

        lines = elections_reports.result_lines(results.rows)

        self.assertEqual([line.label for line in lines], ["Ana Rojas", "Beto Diaz", "Blank vote"])
        self.assertEqual([line.percentage for line in lines], ["50.0", "25.0", "25.0"])
        self.assertEqual([line.bar_width for line in lines], [100.0, 50.0, 50.0])
        self.assertTrue(lines[0].is_winner)
        self.assertTrue(lines[2].is_blank)

    def test_certificate_context_groups_by_office(self) -> None:
        context = elections_reports.certificate_context(self.process)

        self.assertEqual(len(context["sections"]), 1)
        section = context["sections"][0]
        self.assertEqual(section["office_label"], self.personero.get_office_display())
        self.assertEqual(section["elections"][0]["winner_name"], "Ana Rojas")
        self.assertEqual(context["stats"].total_voters, 4)

    def test_reports_never_recompute_tallies(self) -> None:
        with (
            patch("core.elections_services.tabulate_plurality") as tabulate_mock,
            patch("core.elections_reports.render_pdf_bytes_from_html", return_value=b"%PDF-1.7 fake") as render_mock,
        ):
            report = elections_reports.build_certificate_pdf(self.process)

        tabulate_mock.assert_not_called()
        self.assertEqual(report.content, b"%PDF-1.7 fake")
        self.assertEqual(report.content_type, "application/pdf")
        self.assertTrue(report.filename.endswith(f"_{self.process.pk}.pdf"))
        html = render_mock.call_args.kwargs["html"]
        self.assertIn("Ana Rojas", html)
        self.assertIn(self.school.institution.name, html)

    def test_election_results_pdf_uses_the_election_template(self) -> None:
        with patch("core.elections_reports.render_pdf_bytes_from_html", return_value=b"%PDF") as render_mock:
            report = elections_reports.build_election_results_pdf(self.personero)

        self.assertEqual(report.filename, f"results_election_{self.personero.pk}.pdf")
        html = render_mock.call_args.kwargs["html"]
        self.assertIn("Todos cuentan", html)
        self.assertIn("Beto Diaz", html)

    def test_participation_pdf_lists_grades(self) -> None:
        with patch("core.elections_reports.render_pdf_bytes_from_html", return_value=b"%PDF") as render_mock:
            elections_reports.build_participation_pdf(self.process)

        self.assertIn("Sexto", render_mock.call_args.kwargs["html"])

    def test_rendering_failure_keeps_results(self) -> None:
        before = ElectionResult.objects.filter(election=self.personero).count()

        with patch(
            "core.elections_reports.render_pdf_bytes_from_html",
            side_effect=ReportRenderingError("The PDF engine is not available."),
        ):
            with self.assertRaises(ReportRenderingError):
                elections_reports.build_certificate_pdf(self.process)

        self.assertEqual(ElectionResult.objects.filter(election=self.personero).count(), before)
        self.process.refresh_from_db()
        self.assertEqual(self.process.phase, Phase.closed)

    def test_results_workbook(self) -> None:
        report = elections_reports.build_results_workbook(self.process)

        self.assertEqual(report.content_type, elections_reports.XLSX_CONTENT_TYPE)
        sheet = load_workbook(BytesIO(report.content)).active
        values = [list(row) for row in sheet.iter_rows(values_only=True)]
        header_index = values.index(["Office", "Scope", "Position", "Candidate", "Votes", "Percentage", "Winner"])
        data = values[header_index + 1 :]
        self.assertEqual([row[3] for row in data], ["Ana Rojas", "Beto Diaz", "Blank vote"])
        self.assertEqual([row[4] for row in data], [2, 1, 1])
        self.assertEqual(data[0][6], "yes")
