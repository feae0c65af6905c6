import logging
from typing import override

from django.core.management.base import BaseCommand, CommandError

from core import elections_lifecycle, elections_services
from core.elections_services import ElectionError
from core.models import Election, ElectionProcess

logger = logging.getLogger(__name__)

ACTIONS = ("advance", "close", "cancel", "retabulate")


class Command(BaseCommand):
    help = (
        "Operate an election process from the command line: advance it to the next phase, "
        "close voting and tabulate, cancel it, or rebuild stored results of a closed process."
    )

    @override
    def add_arguments(self, parser) -> None:
        parser.add_argument("action", choices=ACTIONS)
        parser.add_argument("process_id", type=int)
        parser.add_argument(
            "--actor",
            default="manage.py",
            help="Name recorded in the audit log.",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be done without mutating data.",
        )

    @override
    def handle(self, *args, **options) -> None:
        action: str = options["action"]
        process_id: int = options["process_id"]
        actor: str = str(options.get("actor") or "manage.py")
        dry_run: bool = bool(options.get("dry_run"))

        process = ElectionProcess.objects.filter(pk=process_id).first()
        if process is None:
            raise CommandError(f"Election process {process_id} not found.")

        if dry_run:
            self.stdout.write(f"[dry-run] Would {action} process {process.pk} ({process.name}) in phase {process.phase}.")
            return

        try:
            if action == "advance":
                target = elections_lifecycle.next_phase(process.phase)
                if target is None:
                    raise CommandError(f"Process {process.pk} is already {process.phase}.")
                if target == ElectionProcess.Phase.closed:
                    process = elections_services.close_process(process=process, actor=actor)
                else:
                    process = elections_services.advance_process(
                        process=process,
                        target_phase=target,
                        actor=actor,
                    )
            elif action == "close":
                process = elections_services.close_process(process=process, actor=actor)
            elif action == "cancel":
                process = elections_services.cancel_process(process=process, actor=actor)
            else:
                self._retabulate(process=process, actor=actor)
        except ElectionError as exc:
            raise CommandError(str(exc)) from exc

        self.stdout.write(self.style.SUCCESS(f"Process {process.pk} ({process.name}) is now {process.phase}."))

    def _retabulate(self, *, process: ElectionProcess, actor: str) -> None:
        for election in Election.objects.filter(process=process).order_by("id"):
            rows = elections_services.tabulate_election(election=election, actor=actor)
            self.stdout.write(f"Election {election.pk} ({election.get_office_display()}): {len(rows)} result rows.")
