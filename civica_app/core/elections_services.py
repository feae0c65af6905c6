from __future__ import annotations

import datetime
import logging
from collections.abc import Mapping
from dataclasses import dataclass

import post_office.mail
from django.conf import settings
from django.core.files.uploadedfile import UploadedFile
from django.db import IntegrityError, transaction
from django.db.models import Prefetch
from django.utils import timezone

from core.elections_catalog import generate_elections_for_process
from core.elections_eligibility import is_eligible_for_election
from core.elections_lifecycle import (
    CANDIDACY_DECISION_PHASES,
    PhaseTransitionRejected,
    is_terminal,
    validate_phase_transition,
)
from core.elections_tally import TallyCandidate, tabulate_plurality
from core.models import (
    AcademicYear,
    AuditLogEntry,
    Candidate,
    Election,
    ElectionProcess,
    ElectionResult,
    Institution,
    Student,
    Vote,
)

logger = logging.getLogger(__name__)

ALREADY_VOTED_MESSAGE = "You have already voted in this election."

PROCESS_WINDOW_FIELDS: tuple[str, ...] = (
    "registration_start",
    "registration_end",
    "campaign_start",
    "campaign_end",
    "voting_start",
    "voting_end",
)
PROCESS_OFFICE_FLAG_FIELDS: tuple[str, ...] = (
    "enable_personero",
    "enable_contralor",
    "enable_grade_representative",
    "enable_group_representative",
)
PROCESS_CONFIG_FIELDS: tuple[str, ...] = (
    "name",
    "description",
    *PROCESS_WINDOW_FIELDS,
    *PROCESS_OFFICE_FLAG_FIELDS,
    "allow_blank_vote",
)


class ElectionError(Exception):
    """Base class for election domain errors.

    ``status_code`` is the HTTP status the JSON views answer with.
    """

    status_code = 400


class ElectionConflictError(ElectionError):
    status_code = 409


class DuplicateProcessError(ElectionConflictError):
    pass


class DuplicateCandidacyError(ElectionConflictError):
    pass


class DuplicateVoteError(ElectionConflictError):
    pass


class InvalidPhaseTransitionError(ElectionError):
    status_code = 409


class ElectionNotFoundError(ElectionError):
    status_code = 404


class InvalidReferenceError(ElectionError):
    pass


class PolicyViolationError(ElectionError):
    pass


class NotEligibleError(PolicyViolationError):
    status_code = 403


class BlankVoteNotAllowedError(PolicyViolationError):
    pass


class TabulationError(ElectionError):
    status_code = 500


@dataclass(frozen=True)
class ElectionResults:
    election: Election
    rows: tuple[ElectionResult, ...]
    total_votes: int

    @property
    def winner(self) -> ElectionResult | None:
        for row in self.rows:
            if row.is_winner:
                return row
        return None


def _audit(
    *,
    process: ElectionProcess,
    event_type: str,
    payload: dict[str, object],
    actor: str | None = None,
    election: Election | None = None,
) -> AuditLogEntry:
    return AuditLogEntry.objects.create(
        process=process,
        election=election,
        event_type=event_type,
        payload=payload,
        actor=str(actor or ""),
    )


def _record_failure(
    *,
    process: ElectionProcess,
    event_type: str,
    exc: Exception,
    actor: str | None,
) -> None:
    # Runs after the failed transaction has rolled back so the entry survives.
    try:
        with transaction.atomic():
            _audit(
                process=process,
                event_type=event_type,
                payload={"error": str(exc), "error_type": type(exc).__name__},
                actor=actor,
            )
    except Exception:
        logger.exception("Could not record %s for process_id=%s", event_type, process.pk)


def _clean_process_config(config: Mapping[str, object]) -> dict[str, object]:
    unknown = sorted(set(config) - set(PROCESS_CONFIG_FIELDS))
    if unknown:
        raise InvalidReferenceError(f"Unknown process settings: {', '.join(unknown)}.")

    values = dict(config)
    if "name" in values:
        values["name"] = str(values["name"] or "").strip()
        if not values["name"]:
            raise PolicyViolationError("A process name is required.")
    if "description" in values:
        values["description"] = str(values["description"] or "")
    for field in (*PROCESS_OFFICE_FLAG_FIELDS, "allow_blank_vote"):
        if field in values:
            values[field] = bool(values[field])
    return values


def _validate_windows(windows: Mapping[str, datetime.datetime | None]) -> None:
    ordered = [windows.get(field) for field in PROCESS_WINDOW_FIELDS]
    present = [(field, value) for field, value in zip(PROCESS_WINDOW_FIELDS, ordered, strict=True) if value]
    for (earlier_field, earlier), (later_field, later) in zip(present, present[1:]):
        if later < earlier:
            raise PolicyViolationError(
                f"{later_field.replace('_', ' ')} must not be before {earlier_field.replace('_', ' ')}."
            )


def get_current_process(institution: Institution | int) -> ElectionProcess | None:
    """Return the institution's process that has not been closed or cancelled yet."""
    institution_id = institution if isinstance(institution, int) else institution.pk
    return (
        ElectionProcess.objects.in_progress()
        .filter(institution_id=institution_id)
        .order_by("-created_at", "-id")
        .first()
    )


@transaction.atomic
def create_process(
    *,
    institution: Institution,
    academic_year: AcademicYear,
    config: Mapping[str, object],
    created_by=None,
    actor: str | None = None,
) -> ElectionProcess:
    """Create a draft process together with its election catalog.

    The process row and its elections are written in one transaction, so a
    process never exists without its seats.
    """
    if academic_year.institution_id != institution.pk:
        raise InvalidReferenceError("The academic year belongs to another institution.")

    values = _clean_process_config(config)
    if not values.get("name"):
        raise PolicyViolationError("A process name is required.")
    _validate_windows({field: values.get(field) for field in PROCESS_WINDOW_FIELDS})

    duplicate_message = "An election process already exists for this institution and academic year."
    if ElectionProcess.objects.not_cancelled().filter(institution=institution, academic_year=academic_year).exists():
        raise DuplicateProcessError(duplicate_message)

    try:
        with transaction.atomic():
            process = ElectionProcess.objects.create(
                institution=institution,
                academic_year=academic_year,
                created_by=created_by,
                phase=ElectionProcess.Phase.draft,
                **values,
            )
    except IntegrityError as exc:
        # A concurrent create won the race past the existence check.
        raise DuplicateProcessError(duplicate_message) from exc

    elections = generate_elections_for_process(process)

    _audit(
        process=process,
        event_type="process_created",
        payload={"elections": len(elections), "academic_year": academic_year.year},
        actor=actor,
    )
    logger.info(
        "Created election process process_id=%s institution_id=%s year=%s elections=%s",
        process.pk,
        institution.pk,
        academic_year.year,
        len(elections),
    )
    return process


@transaction.atomic
def update_process_configuration(
    *,
    process: ElectionProcess,
    changes: Mapping[str, object],
    actor: str | None = None,
) -> ElectionProcess:
    locked = ElectionProcess.objects.select_for_update().get(pk=process.pk)
    if locked.phase != ElectionProcess.Phase.draft:
        raise InvalidPhaseTransitionError("Only draft processes can be reconfigured.")

    values = _clean_process_config(changes)
    _validate_windows({field: values.get(field, getattr(locked, field)) for field in PROCESS_WINDOW_FIELDS})

    flags_changed = any(
        field in values and values[field] != getattr(locked, field) for field in PROCESS_OFFICE_FLAG_FIELDS
    )

    for field, value in values.items():
        setattr(locked, field, value)
    locked.save()

    if flags_changed:
        # Draft processes have no candidacies or votes yet.
        Election.objects.filter(process=locked).delete()
        generate_elections_for_process(locked)

    _audit(
        process=locked,
        event_type="process_reconfigured",
        payload={"fields": sorted(values), "catalog_regenerated": flags_changed},
        actor=actor,
    )
    return locked


@transaction.atomic
def advance_process(
    *,
    process: ElectionProcess,
    target_phase: str,
    actor: str | None = None,
) -> ElectionProcess:
    locked = ElectionProcess.objects.select_for_update().get(pk=process.pk)
    previous = locked.phase

    try:
        validate_phase_transition(previous, target_phase)
    except PhaseTransitionRejected as exc:
        raise InvalidPhaseTransitionError(str(exc)) from exc

    if target_phase == ElectionProcess.Phase.closed:
        raise InvalidPhaseTransitionError("Closing tabulates every election; use close instead.")
    if target_phase == ElectionProcess.Phase.cancelled:
        raise InvalidPhaseTransitionError("Use cancel to cancel an election process.")

    locked.phase = target_phase
    locked.save(update_fields=["phase", "updated_at"])

    _audit(
        process=locked,
        event_type="phase_changed",
        payload={"from": previous, "to": target_phase},
        actor=actor,
    )
    logger.info("Election process phase changed process_id=%s from=%s to=%s", locked.pk, previous, target_phase)
    return locked


@transaction.atomic
def cancel_process(*, process: ElectionProcess, actor: str | None = None) -> ElectionProcess:
    locked = ElectionProcess.objects.select_for_update().get(pk=process.pk)
    previous = locked.phase
    if is_terminal(previous):
        raise InvalidPhaseTransitionError(f"A {previous} election process cannot be cancelled.")

    locked.phase = ElectionProcess.Phase.cancelled
    locked.save(update_fields=["phase", "updated_at"])

    _audit(
        process=locked,
        event_type="process_cancelled",
        payload={"from": previous},
        actor=actor,
    )
    logger.info("Election process cancelled process_id=%s from=%s", locked.pk, previous)
    return locked


def _tabulate_and_store(*, election: Election, computed_at: datetime.datetime) -> list[ElectionResult]:
    candidates = [
        TallyCandidate(
            id=c.id,
            approved=c.status == Candidate.Status.approved,
            registered_at=c.created_at,
        )
        for c in Candidate.objects.filter(election=election).only("id", "status", "created_at").order_by("created_at", "id")
    ]
    vote_candidate_ids = list(Vote.objects.filter(election=election).values_list("candidate_id", flat=True))

    try:
        rows = tabulate_plurality(candidates=candidates, vote_candidate_ids=vote_candidate_ids)
    except ValueError as exc:
        raise TabulationError(f"Election {election.pk}: {exc}") from exc

    # Results are derived state: replace the whole set.
    ElectionResult.objects.filter(election=election).delete()
    created = ElectionResult.objects.bulk_create(
        [
            ElectionResult(
                election=election,
                candidate_id=row.candidate_id,
                votes=row.votes,
                percentage=row.percentage,
                position=row.position,
                is_winner=row.is_winner,
                computed_at=computed_at,
            )
            for row in rows
        ]
    )
    Election.objects.filter(pk=election.pk).update(tabulated_at=computed_at)
    election.tabulated_at = computed_at
    return created


@transaction.atomic
def _close_locked_process(*, process: ElectionProcess, actor: str | None) -> ElectionProcess:
    locked = ElectionProcess.objects.select_for_update().get(pk=process.pk)
    if locked.phase != ElectionProcess.Phase.voting:
        raise InvalidPhaseTransitionError("Only an election process in the voting phase can be closed.")

    # Locking every election serializes the close with in-flight votes.
    elections = list(Election.objects.select_for_update().filter(process=locked).order_by("id"))

    computed_at = timezone.now()
    summary: list[dict[str, object]] = []
    for election in elections:
        rows = _tabulate_and_store(election=election, computed_at=computed_at)
        winner = next((r for r in rows if r.is_winner), None)
        summary.append(
            {
                "election_id": election.pk,
                "total_votes": sum(r.votes for r in rows),
                "winner_candidate_id": winner.candidate_id if winner else None,
            }
        )

    locked.phase = ElectionProcess.Phase.closed
    locked.closed_at = computed_at
    locked.save(update_fields=["phase", "closed_at", "updated_at"])

    _audit(
        process=locked,
        event_type="process_closed",
        payload={"elections": summary},
        actor=actor,
    )
    return locked


def close_process(*, process: ElectionProcess, actor: str | None = None) -> ElectionProcess:
    """Tabulate every election of ``process`` and close it.

    All or nothing: when any election fails to tabulate, no result rows are
    kept and the process stays in voting so the close can be retried.
    """
    try:
        closed = _close_locked_process(process=process, actor=actor)
    except InvalidPhaseTransitionError:
        raise
    except Exception as exc:
        logger.exception("Closing election process process_id=%s failed", process.pk)
        _record_failure(process=process, event_type="process_close_failed", exc=exc, actor=actor)
        raise TabulationError(
            f"Failed to close election process: {exc}. "
            "Recovery: The process remains in the voting phase; verify candidate and vote data, then retry. "
            "Contact an administrator if the issue persists."
        ) from exc

    logger.info("Election process closed process_id=%s", closed.pk)
    return closed


@transaction.atomic
def tabulate_election(*, election: Election, actor: str | None = None) -> list[ElectionResult]:
    """Recompute the results of one election of a closed process.

    Closing already tabulates every election; this is the repair path used
    by operators. Running it again over the same votes yields the same rows.
    """
    locked = Election.objects.select_for_update().get(pk=election.pk)
    process = ElectionProcess.objects.get(pk=locked.process_id)
    if process.phase != ElectionProcess.Phase.closed:
        raise InvalidPhaseTransitionError("Results are computed when the election process is closed.")

    rows = _tabulate_and_store(election=locked, computed_at=timezone.now())
    _audit(
        process=process,
        election=locked,
        event_type="election_tabulated",
        payload={"rows": len(rows), "total_votes": sum(r.votes for r in rows)},
        actor=actor,
    )
    return rows


def _get_election_for_update(election: Election | int) -> Election:
    election_id = election if isinstance(election, int) else election.pk
    try:
        return Election.objects.select_for_update().get(pk=election_id)
    except Election.DoesNotExist as exc:
        raise ElectionNotFoundError("Election not found.") from exc


def _process_for_election(election: Election) -> ElectionProcess:
    return ElectionProcess.objects.only("id", "phase", "allow_blank_vote", "institution_id").get(
        pk=election.process_id
    )


@transaction.atomic
def register_candidate(
    *,
    election: Election | int,
    student: Student,
    slogan: str = "",
    proposals: str = "",
    photo: UploadedFile | None = None,
    color: str = "",
    ballot_number: int | None = None,
    actor: str | None = None,
) -> Candidate:
    locked = _get_election_for_update(election)
    process = _process_for_election(locked)

    if process.phase != ElectionProcess.Phase.registration:
        raise InvalidPhaseTransitionError("Candidacies can only be registered during the registration phase.")
    if locked.status != Election.Status.active:
        raise InvalidReferenceError("This election is not active.")
    if not is_eligible_for_election(student, locked):
        raise InvalidReferenceError("The student is not part of this election's electorate.")

    duplicate_message = "This student is already a candidate in this election."
    if Candidate.objects.filter(election=locked, student=student).exists():
        raise DuplicateCandidacyError(duplicate_message)
    if ballot_number is not None and Candidate.objects.filter(election=locked, ballot_number=ballot_number).exists():
        raise DuplicateCandidacyError(f"Ballot number {ballot_number} is already taken in this election.")

    try:
        with transaction.atomic():
            candidate = Candidate(
                election=locked,
                student=student,
                slogan=str(slogan or "").strip(),
                proposals=str(proposals or "").strip(),
                color=str(color or "").strip(),
                ballot_number=ballot_number,
            )
            if photo is not None:
                candidate.photo = photo
            candidate.save()
    except IntegrityError as exc:
        raise DuplicateCandidacyError(duplicate_message) from exc

    _audit(
        process=process,
        election=locked,
        event_type="candidacy_registered",
        payload={"candidate_id": candidate.pk, "student_id": student.pk},
        actor=actor,
    )
    return candidate


def _decide_candidacy(
    *,
    candidate: Candidate | int,
    status: str,
    reason: str,
    decided_by,
    actor: str | None,
) -> Candidate:
    candidate_id = candidate if isinstance(candidate, int) else candidate.pk
    try:
        locked = Candidate.objects.select_for_update().get(pk=candidate_id)
    except Candidate.DoesNotExist as exc:
        raise ElectionNotFoundError("Candidate not found.") from exc

    election = Election.objects.select_related("grade", "group__grade").get(pk=locked.election_id)
    process = _process_for_election(election)
    if process.phase not in CANDIDACY_DECISION_PHASES:
        raise InvalidPhaseTransitionError("Candidacies can only be decided during registration or campaign.")
    if locked.status != Candidate.Status.pending:
        raise InvalidPhaseTransitionError(f"This candidacy was already {locked.status}.")

    locked.status = status
    locked.rejection_reason = reason
    locked.decided_by = decided_by
    locked.decided_at = timezone.now()
    locked.save(update_fields=["status", "rejection_reason", "decided_by", "decided_at"])
    locked.election = election

    payload: dict[str, object] = {"candidate_id": locked.pk}
    if reason:
        payload["reason"] = reason
    _audit(
        process=process,
        election=election,
        event_type=f"candidacy_{status}",
        payload=payload,
        actor=actor,
    )

    send_candidacy_decision_email(candidate=locked)
    return locked


@transaction.atomic
def approve_candidate(*, candidate: Candidate | int, decided_by=None, actor: str | None = None) -> Candidate:
    return _decide_candidacy(
        candidate=candidate,
        status=Candidate.Status.approved,
        reason="",
        decided_by=decided_by,
        actor=actor,
    )


@transaction.atomic
def reject_candidate(
    *,
    candidate: Candidate | int,
    reason: str,
    decided_by=None,
    actor: str | None = None,
) -> Candidate:
    reason = str(reason or "").strip()
    if not reason:
        raise PolicyViolationError("A reason is required to reject a candidacy.")
    return _decide_candidacy(
        candidate=candidate,
        status=Candidate.Status.rejected,
        reason=reason,
        decided_by=decided_by,
        actor=actor,
    )


def send_candidacy_decision_email(*, candidate: Candidate) -> bool:
    """Queue a notification about a candidacy decision.

    Returns False when the student has no linked account email.
    """
    user = candidate.student.user
    email = str(getattr(user, "email", "") or "").strip() if user is not None else ""
    if not email:
        logger.debug("No email for candidacy decision candidate_id=%s", candidate.pk)
        return False

    office = f"{candidate.election.get_office_display()} ({candidate.election.scope_label})"
    if candidate.status == Candidate.Status.approved:
        subject = f"Your candidacy for {office} was approved"
        message = (
            f"Hello {candidate.student.first_name},\n\n"
            f"Your candidacy for {office} has been approved. "
            "You will appear on the ballot when voting opens."
        )
    else:
        subject = f"Your candidacy for {office} was not approved"
        message = (
            f"Hello {candidate.student.first_name},\n\n"
            f"Your candidacy for {office} was not approved.\n\n"
            f"Reason: {candidate.rejection_reason}"
        )

    post_office.mail.send(
        recipients=[email],
        sender=settings.DEFAULT_FROM_EMAIL,
        subject=subject,
        message=message,
    )
    return True


def list_candidates(*, election: Election, approved_only: bool = False) -> list[Candidate]:
    qs = Candidate.objects.filter(election=election).select_related("student").order_by("created_at", "id")
    if approved_only:
        qs = qs.filter(status=Candidate.Status.approved)
    return list(qs)


@transaction.atomic
def cast_vote(*, election: Election | int, voter: Student, candidate_id: int | None = None) -> Vote:
    """Record one vote of ``voter`` in ``election``; ``candidate_id=None`` is blank.

    The election row lock orders this against ``close_process``. The unique
    (election, voter) constraint is what guarantees a single vote when two
    submissions race past the existence check.
    """
    locked = _get_election_for_update(election)
    process = _process_for_election(locked)

    if process.phase != ElectionProcess.Phase.voting:
        raise InvalidPhaseTransitionError("Voting is not open for this election.")
    if locked.status != Election.Status.active:
        raise InvalidReferenceError("This election is not active.")
    if not is_eligible_for_election(voter, locked):
        raise NotEligibleError("You are not eligible to vote in this election.")

    if Vote.objects.filter(election=locked, voter=voter).exists():
        raise DuplicateVoteError(ALREADY_VOTED_MESSAGE)

    candidate: Candidate | None = None
    if candidate_id is not None:
        candidate = Candidate.objects.filter(
            pk=candidate_id,
            election=locked,
            status=Candidate.Status.approved,
        ).first()
        if candidate is None:
            raise InvalidReferenceError("The selected candidate is not on this election's ballot.")
    elif not process.allow_blank_vote:
        raise BlankVoteNotAllowedError("Blank votes are not allowed in this election process.")

    try:
        with transaction.atomic():
            vote = Vote.objects.create(election=locked, voter=voter, candidate=candidate)
    except IntegrityError as exc:
        raise DuplicateVoteError(ALREADY_VOTED_MESSAGE) from exc

    # Never log the selected candidate.
    logger.info("Vote recorded election_id=%s vote_id=%s", locked.pk, vote.pk)
    return vote


def results_for_election(election: Election) -> ElectionResults:
    rows = tuple(
        ElectionResult.objects.filter(election=election)
        .select_related("candidate__student")
        .order_by("position")
    )
    return ElectionResults(election=election, rows=rows, total_votes=sum(r.votes for r in rows))


def results_for_process(process: ElectionProcess) -> list[ElectionResults]:
    elections = (
        Election.objects.filter(process=process)
        .select_related("grade", "group__grade")
        .prefetch_related(
            Prefetch(
                "results",
                queryset=ElectionResult.objects.select_related("candidate__student").order_by("position"),
            )
        )
        .order_by("id")
    )
    return [
        ElectionResults(election=e, rows=tuple(e.results.all()), total_votes=sum(r.votes for r in e.results.all()))
        for e in elections
    ]
