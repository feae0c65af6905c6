from __future__ import annotations

import logging
from io import BytesIO
from typing import override

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.uploadedfile import UploadedFile
from django.db import models
from django.db.models import Q
from PIL import Image

logger = logging.getLogger(__name__)


class Institution(models.Model):
    name = models.CharField(max_length=255)
    address = models.CharField(max_length=255, blank=True, default="")
    nit = models.CharField(max_length=32, blank=True, default="", help_text="Tax identification number.")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("name", "id")

    def __str__(self) -> str:
        return self.name


class AcademicYear(models.Model):
    institution = models.ForeignKey(Institution, on_delete=models.CASCADE, related_name="academic_years")
    year = models.PositiveSmallIntegerField()
    is_current = models.BooleanField(default=False)

    class Meta:
        ordering = ("-year", "id")
        constraints = [
            models.UniqueConstraint(
                fields=["institution", "year"],
                name="uniq_academicyear_institution_year",
            ),
        ]

    def __str__(self) -> str:
        return str(self.year)


class Grade(models.Model):
    """A school grade. Grades belong to one institution."""

    institution = models.ForeignKey(Institution, on_delete=models.CASCADE, related_name="grades")
    name = models.CharField(max_length=64)
    ordinal = models.PositiveSmallIntegerField(default=0, help_text="Sort position within the institution.")

    class Meta:
        ordering = ("ordinal", "name", "id")
        constraints = [
            models.UniqueConstraint(
                fields=["institution", "name"],
                name="uniq_grade_institution_name",
            ),
        ]

    def __str__(self) -> str:
        return self.name


class ClassGroupQuerySet(models.QuerySet["ClassGroup"]):
    def active(self) -> ClassGroupQuerySet:
        return self.filter(is_active=True)

    def for_institution(self, institution: Institution | int) -> ClassGroupQuerySet:
        return self.filter(grade__institution=institution)


class ClassGroup(models.Model):
    """A course (section) of a grade, e.g. "6A"."""

    grade = models.ForeignKey(Grade, on_delete=models.CASCADE, related_name="groups")
    name = models.CharField(max_length=64)
    is_active = models.BooleanField(default=True)

    objects = ClassGroupQuerySet.as_manager()

    class Meta:
        verbose_name = "group"
        ordering = ("grade__ordinal", "name", "id")
        constraints = [
            models.UniqueConstraint(
                fields=["grade", "name"],
                name="uniq_classgroup_grade_name",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.grade.name} {self.name}"


class Student(models.Model):
    institution = models.ForeignKey(Institution, on_delete=models.CASCADE, related_name="students")
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="student",
        help_text="Login account used to vote or register a candidacy.",
    )
    first_name = models.CharField(max_length=128)
    last_name = models.CharField(max_length=128)
    document_number = models.CharField(max_length=32, blank=True, default="")

    class Meta:
        ordering = ("last_name", "first_name", "id")

    def __str__(self) -> str:
        return self.full_name

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class EnrollmentQuerySet(models.QuerySet["Enrollment"]):
    def active(self) -> EnrollmentQuerySet:
        # Raw string: the queryset is defined before Enrollment.Status.
        return self.filter(status="active")


class Enrollment(models.Model):
    class Status(models.TextChoices):
        active = "active", "Active"
        withdrawn = "withdrawn", "Withdrawn"
        graduated = "graduated", "Graduated"

    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name="enrollments")
    group = models.ForeignKey(ClassGroup, on_delete=models.PROTECT, related_name="enrollments")
    academic_year = models.ForeignKey(AcademicYear, on_delete=models.PROTECT, related_name="enrollments")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.active)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = EnrollmentQuerySet.as_manager()

    class Meta:
        ordering = ("-created_at", "id")
        constraints = [
            models.UniqueConstraint(
                fields=["student"],
                condition=Q(status="active"),
                name="uniq_enrollment_active_student",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.student_id}:{self.group_id}:{self.status}"


class ElectionProcessQuerySet(models.QuerySet["ElectionProcess"]):
    def not_cancelled(self) -> ElectionProcessQuerySet:
        return self.exclude(phase="cancelled")

    def in_progress(self) -> ElectionProcessQuerySet:
        return self.filter(phase__in=["draft", "registration", "campaign", "voting"])

    def voting(self) -> ElectionProcessQuerySet:
        return self.filter(phase="voting")


class ElectionProcess(models.Model):
    class Phase(models.TextChoices):
        draft = "draft", "Draft"
        registration = "registration", "Candidate registration"
        campaign = "campaign", "Campaign"
        voting = "voting", "Voting"
        closed = "closed", "Closed"
        cancelled = "cancelled", "Cancelled"

    institution = models.ForeignKey(Institution, on_delete=models.PROTECT, related_name="election_processes")
    academic_year = models.ForeignKey(AcademicYear, on_delete=models.PROTECT, related_name="election_processes")
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")

    # Windows are informational; phases only move through explicit transitions.
    registration_start = models.DateTimeField(blank=True, null=True)
    registration_end = models.DateTimeField(blank=True, null=True)
    campaign_start = models.DateTimeField(blank=True, null=True)
    campaign_end = models.DateTimeField(blank=True, null=True)
    voting_start = models.DateTimeField(blank=True, null=True)
    voting_end = models.DateTimeField(blank=True, null=True)

    enable_personero = models.BooleanField(default=True, help_text="Elect an institution-wide student ombudsperson.")
    enable_contralor = models.BooleanField(default=True, help_text="Elect an institution-wide student comptroller.")
    enable_grade_representative = models.BooleanField(default=True, help_text="Elect one representative per grade.")
    enable_group_representative = models.BooleanField(default=True, help_text="Elect one representative per group.")
    allow_blank_vote = models.BooleanField(default=True)

    phase = models.CharField(max_length=16, choices=Phase.choices, default=Phase.draft)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    closed_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ElectionProcessQuerySet.as_manager()

    class Meta:
        verbose_name_plural = "Election processes"
        ordering = ("-created_at", "id")
        constraints = [
            models.UniqueConstraint(
                fields=["institution", "academic_year"],
                condition=~Q(phase="cancelled"),
                name="uniq_electionprocess_institution_year",
            ),
        ]
        permissions = [
            ("manage_elections", "Can manage election processes"),
            ("view_election_results", "Can view election results"),
        ]

    def __str__(self) -> str:
        return self.name

    @property
    def is_terminal(self) -> bool:
        return self.phase in {self.Phase.closed, self.Phase.cancelled}


class ElectionQuerySet(models.QuerySet["Election"]):
    def active(self) -> ElectionQuerySet:
        return self.filter(status="active")


class Election(models.Model):
    """One contestable seat of a process."""

    class Office(models.TextChoices):
        personero = "personero", "Student ombudsperson (personero)"
        contralor = "contralor", "Student comptroller (contralor)"
        grade_representative = "grade_representative", "Grade representative"
        group_representative = "group_representative", "Group representative"

    INSTITUTION_WIDE_OFFICES: frozenset[str] = frozenset({Office.personero, Office.contralor})

    class Status(models.TextChoices):
        active = "active", "Active"
        inactive = "inactive", "Inactive"

    process = models.ForeignKey(ElectionProcess, on_delete=models.CASCADE, related_name="elections")
    office = models.CharField(max_length=32, choices=Office.choices)
    grade = models.ForeignKey(Grade, on_delete=models.PROTECT, null=True, blank=True, related_name="elections")
    group = models.ForeignKey(ClassGroup, on_delete=models.PROTECT, null=True, blank=True, related_name="elections")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.active)
    tabulated_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = ElectionQuerySet.as_manager()

    class Meta:
        ordering = ("process", "id")
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(office__in=["personero", "contralor"], grade__isnull=True, group__isnull=True)
                    | Q(office="grade_representative", grade__isnull=False, group__isnull=True)
                    | Q(office="group_representative", grade__isnull=True, group__isnull=False)
                ),
                name="election_scope_matches_office",
            ),
            models.UniqueConstraint(
                fields=["process", "office"],
                condition=Q(office__in=["personero", "contralor"]),
                name="uniq_election_process_office",
            ),
            models.UniqueConstraint(
                fields=["process", "grade"],
                condition=Q(grade__isnull=False),
                name="uniq_election_process_grade",
            ),
            models.UniqueConstraint(
                fields=["process", "group"],
                condition=Q(group__isnull=False),
                name="uniq_election_process_group",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.get_office_display()} ({self.scope_label})"

    @property
    def is_institution_wide(self) -> bool:
        return self.office in self.INSTITUTION_WIDE_OFFICES

    @property
    def scope_label(self) -> str:
        if self.group_id is not None:
            return str(self.group)
        if self.grade_id is not None:
            return self.grade.name
        return "Institution"


def candidate_photo_upload_to(instance: Candidate, filename: str) -> str:
    # Deterministic name; the upload is always re-encoded as PNG.
    return f"elections/candidates/{instance.pk}.png"


class Candidate(models.Model):
    class Status(models.TextChoices):
        pending = "pending", "Pending"
        approved = "approved", "Approved"
        rejected = "rejected", "Rejected"

    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name="candidates")
    student = models.ForeignKey(Student, on_delete=models.PROTECT, related_name="candidacies")
    slogan = models.CharField(max_length=255, blank=True, default="")
    proposals = models.TextField(blank=True, default="")
    photo = models.ImageField(upload_to=candidate_photo_upload_to, blank=True, default="")
    color = models.CharField(max_length=16, blank=True, default="", help_text="Ballot color, e.g. #1e88e5.")
    ballot_number = models.PositiveSmallIntegerField(blank=True, null=True)

    status = models.CharField(max_length=16, choices=Status.choices, default=Status.pending)
    rejection_reason = models.TextField(blank=True, default="")
    decided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    decided_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("created_at", "id")
        constraints = [
            models.UniqueConstraint(
                fields=["election", "student"],
                name="uniq_candidate_election_student",
            ),
            models.UniqueConstraint(
                fields=["election", "ballot_number"],
                condition=Q(ballot_number__isnull=False),
                name="uniq_candidate_election_ballot_number",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.student.full_name} ({self.election_id})"

    @override
    def save(self, *args, **kwargs) -> None:
        if self.pk is None and self.photo:
            # The storage path is based on the autoincrement PK; ensure we have
            # one before writing the file.
            pending_photo = self.photo
            self.photo = None
            super().save(*args, **kwargs)
            self.photo = pending_photo
            kwargs.pop("force_insert", None)

        self._convert_new_photo_upload_to_png()
        super().save(*args, **kwargs)

    def _convert_new_photo_upload_to_png(self) -> None:
        if not self.photo:
            return

        # Only new uploads are converted; stored files are left alone.
        if not hasattr(self.photo, "_file") or self.photo._file is None:
            return
        if not isinstance(self.photo._file, UploadedFile):
            return

        uploaded = self.photo._file
        uploaded.seek(0)
        img = Image.open(uploaded)
        img.load()

        if img.mode != "RGBA":
            img = img.convert("RGBA")

        max_px = int(settings.ELECTION_CANDIDATE_PHOTO_MAX_PX)
        if img.width > max_px or img.height > max_px:
            img.thumbnail((max_px, max_px))
            logger.debug("Scaled candidate photo candidate_id=%s to %sx%s", self.pk, img.width, img.height)

        buf = BytesIO()
        img.save(buf, format="PNG", optimize=True)
        self.photo.save(f"{self.pk}.png", ContentFile(buf.getvalue()), save=False)


class VoteImmutableError(Exception):
    pass


class VoteQuerySet(models.QuerySet["Vote"]):
    def for_process(self, process: ElectionProcess) -> VoteQuerySet:
        return self.filter(election__process=process)


class Vote(models.Model):
    """One cast vote. A null candidate is a blank vote.

    Votes are append-only: there is no update or retraction.
    """

    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name="votes")
    voter = models.ForeignKey(Student, on_delete=models.PROTECT, related_name="votes")
    candidate = models.ForeignKey(Candidate, on_delete=models.PROTECT, null=True, blank=True, related_name="votes")
    created_at = models.DateTimeField(auto_now_add=True)

    objects = VoteQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["election", "voter"],
                name="uniq_vote_election_voter",
            ),
        ]
        indexes = [
            models.Index(fields=["election", "created_at"], name="vote_el_at"),
        ]

    def __str__(self) -> str:
        return f"vote:{self.election_id}:{self.pk}"

    @property
    def is_blank(self) -> bool:
        return self.candidate_id is None

    @override
    def save(self, *args, **kwargs) -> None:
        if not self._state.adding:
            raise VoteImmutableError("Votes cannot be modified once cast.")
        super().save(*args, **kwargs)

    @override
    def delete(self, *args, **kwargs):
        raise VoteImmutableError("Votes cannot be deleted.")


class ElectionResult(models.Model):
    """A tabulated result row. A null candidate is the blank-vote row."""

    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name="results")
    candidate = models.ForeignKey(Candidate, on_delete=models.CASCADE, null=True, blank=True, related_name="results")
    votes = models.PositiveIntegerField(default=0)
    # Full precision; rounding happens at display time.
    percentage = models.FloatField(default=0.0)
    position = models.PositiveSmallIntegerField()
    is_winner = models.BooleanField(default=False)
    computed_at = models.DateTimeField()

    class Meta:
        ordering = ("election", "position")
        constraints = [
            models.UniqueConstraint(
                fields=["election", "position"],
                name="uniq_electionresult_election_position",
            ),
            models.UniqueConstraint(
                fields=["election"],
                condition=Q(is_winner=True),
                name="uniq_electionresult_one_winner",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.election_id}#{self.position}"

    @property
    def is_blank(self) -> bool:
        return self.candidate_id is None


class AuditLogEntry(models.Model):
    process = models.ForeignKey(ElectionProcess, on_delete=models.CASCADE, related_name="audit_log")
    election = models.ForeignKey(Election, on_delete=models.CASCADE, null=True, blank=True, related_name="audit_log")
    timestamp = models.DateTimeField(auto_now_add=True)
    event_type = models.CharField(max_length=64)
    payload = models.JSONField(blank=True, default=dict)
    actor = models.CharField(max_length=150, blank=True, default="")

    class Meta:
        verbose_name_plural = "Audit log entries"
        ordering = ("timestamp", "id")
        indexes = [
            models.Index(fields=["process", "timestamp"], name="audit_proc_ts"),
            models.Index(fields=["process", "event_type"], name="audit_proc_ev"),
        ]

    def __str__(self) -> str:
        return f"{self.process_id}:{self.event_type}"
