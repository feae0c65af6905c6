from __future__ import annotations

from io import StringIO

from django.core.management import CommandError, call_command
from django.test import TestCase

from core.models import AuditLogEntry, ElectionProcess, ElectionResult
from core.tests.utils_test_data import advance_to, create_process, create_school

Phase = ElectionProcess.Phase


class ElectionProcessCommandTests(TestCase):
    def setUp(self) -> None:
        self.process = create_process(create_school(layout={"Sexto": ("6A",)}))

    def _call(self, *args: object) -> str:
        out = StringIO()
        call_command("election_process", *args, stdout=out)
        return out.getvalue()

    def test_advance_moves_one_phase(self) -> None:
        output = self._call("advance", self.process.pk, "--actor", "rectoria")

        self.process.refresh_from_db()
        self.assertEqual(self.process.phase, Phase.registration)
        self.assertIn("registration", output)
        self.assertTrue(AuditLogEntry.objects.filter(event_type="phase_changed", actor="rectoria").exists())

    def test_advance_from_voting_closes(self) -> None:
        advance_to(self.process, Phase.voting)

        self._call("advance", self.process.pk)

        self.process.refresh_from_db()
        self.assertEqual(self.process.phase, Phase.closed)
        self.assertTrue(AuditLogEntry.objects.filter(event_type="process_closed", actor="manage.py").exists())

    def test_dry_run_changes_nothing(self) -> None:
        output = self._call("cancel", self.process.pk, "--dry-run")

        self.process.refresh_from_db()
        self.assertEqual(self.process.phase, Phase.draft)
        self.assertIn("[dry-run]", output)

    def test_cancel(self) -> None:
        self._call("cancel", self.process.pk)

        self.process.refresh_from_db()
        self.assertEqual(self.process.phase, Phase.cancelled)

    def test_close_outside_voting_is_a_command_error(self) -> None:
        with self.assertRaisesMessage(CommandError, "voting phase"):
            self._call("close", self.process.pk)

    def test_retabulate_closed_process(self) -> None:
        advance_to(self.process, Phase.voting)
        self._call("close", self.process.pk)
        computed = set(ElectionResult.objects.values_list("election_id", flat=True))

        output = self._call("retabulate", self.process.pk)

        self.assertIn("result rows", output)
        self.assertEqual(set(ElectionResult.objects.values_list("election_id", flat=True)), computed)
        self.assertEqual(
            AuditLogEntry.objects.filter(event_type="election_tabulated").count(),
            self.process.elections.count(),
        )

    def test_unknown_process(self) -> None:
        with self.assertRaisesMessage(CommandError, "not found"):
            self._call("advance", 999999)
