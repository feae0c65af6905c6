import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models
from django.db.models import Q

import core.models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Institution",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("address", models.CharField(blank=True, default="", max_length=255)),
                (
                    "nit",
                    models.CharField(blank=True, default="", help_text="Tax identification number.", max_length=32),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ("name", "id"),
            },
        ),
        migrations.CreateModel(
            name="AcademicYear",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("year", models.PositiveSmallIntegerField()),
                ("is_current", models.BooleanField(default=False)),
                (
                    "institution",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="academic_years",
                        to="core.institution",
                    ),
                ),
            ],
            options={
                "ordering": ("-year", "id"),
                "constraints": [
                    models.UniqueConstraint(
                        fields=("institution", "year"),
                        name="uniq_academicyear_institution_year",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Grade",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=64)),
                (
                    "ordinal",
                    models.PositiveSmallIntegerField(default=0, help_text="Sort position within the institution."),
                ),
                (
                    "institution",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="grades",
                        to="core.institution",
                    ),
                ),
            ],
            options={
                "ordering": ("ordinal", "name", "id"),
                "constraints": [
                    models.UniqueConstraint(
                        fields=("institution", "name"),
                        name="uniq_grade_institution_name",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ClassGroup",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=64)),
                ("is_active", models.BooleanField(default=True)),
                (
                    "grade",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="groups",
                        to="core.grade",
                    ),
                ),
            ],
            options={
                "verbose_name": "group",
                "ordering": ("grade__ordinal", "name", "id"),
                "constraints": [
                    models.UniqueConstraint(
                        fields=("grade", "name"),
                        name="uniq_classgroup_grade_name",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Student",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("first_name", models.CharField(max_length=128)),
                ("last_name", models.CharField(max_length=128)),
                ("document_number", models.CharField(blank=True, default="", max_length=32)),
                (
                    "institution",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="students",
                        to="core.institution",
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        blank=True,
                        help_text="Login account used to vote or register a candidacy.",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="student",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("last_name", "first_name", "id"),
            },
        ),
        migrations.CreateModel(
            name="Enrollment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("withdrawn", "Withdrawn"), ("graduated", "Graduated")],
                        default="active",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "academic_year",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="enrollments",
                        to="core.academicyear",
                    ),
                ),
                (
                    "group",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="enrollments",
                        to="core.classgroup",
                    ),
                ),
                (
                    "student",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="enrollments",
                        to="core.student",
                    ),
                ),
            ],
            options={
                "ordering": ("-created_at", "id"),
                "constraints": [
                    models.UniqueConstraint(
                        condition=Q(status="active"),
                        fields=("student",),
                        name="uniq_enrollment_active_student",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ElectionProcess",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("registration_start", models.DateTimeField(blank=True, null=True)),
                ("registration_end", models.DateTimeField(blank=True, null=True)),
                ("campaign_start", models.DateTimeField(blank=True, null=True)),
                ("campaign_end", models.DateTimeField(blank=True, null=True)),
                ("voting_start", models.DateTimeField(blank=True, null=True)),
                ("voting_end", models.DateTimeField(blank=True, null=True)),
                (
                    "enable_personero",
                    models.BooleanField(default=True, help_text="Elect an institution-wide student ombudsperson."),
                ),
                (
                    "enable_contralor",
                    models.BooleanField(default=True, help_text="Elect an institution-wide student comptroller."),
                ),
                (
                    "enable_grade_representative",
                    models.BooleanField(default=True, help_text="Elect one representative per grade."),
                ),
                (
                    "enable_group_representative",
                    models.BooleanField(default=True, help_text="Elect one representative per group."),
                ),
                ("allow_blank_vote", models.BooleanField(default=True)),
                (
                    "phase",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("registration", "Candidate registration"),
                            ("campaign", "Campaign"),
                            ("voting", "Voting"),
                            ("closed", "Closed"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="draft",
                        max_length=16,
                    ),
                ),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "academic_year",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="election_processes",
                        to="core.academicyear",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "institution",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="election_processes",
                        to="core.institution",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "Election processes",
                "ordering": ("-created_at", "id"),
                "permissions": [
                    ("manage_elections", "Can manage election processes"),
                    ("view_election_results", "Can view election results"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=~Q(phase="cancelled"),
                        fields=("institution", "academic_year"),
                        name="uniq_electionprocess_institution_year",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Election",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "office",
                    models.CharField(
                        choices=[
                            ("personero", "Student ombudsperson (personero)"),
                            ("contralor", "Student comptroller (contralor)"),
                            ("grade_representative", "Grade representative"),
                            ("group_representative", "Group representative"),
                        ],
                        max_length=32,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("inactive", "Inactive")],
                        default="active",
                        max_length=16,
                    ),
                ),
                ("tabulated_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "grade",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="elections",
                        to="core.grade",
                    ),
                ),
                (
                    "group",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="elections",
                        to="core.classgroup",
                    ),
                ),
                (
                    "process",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="elections",
                        to="core.electionprocess",
                    ),
                ),
            ],
            options={
                "ordering": ("process", "id"),
                "constraints": [
                    models.CheckConstraint(
                        condition=(
                            Q(office__in=["personero", "contralor"], grade__isnull=True, group__isnull=True)
                            | Q(office="grade_representative", grade__isnull=False, group__isnull=True)
                            | Q(office="group_representative", grade__isnull=True, group__isnull=False)
                        ),
                        name="election_scope_matches_office",
                    ),
                    models.UniqueConstraint(
                        condition=Q(office__in=["personero", "contralor"]),
                        fields=("process", "office"),
                        name="uniq_election_process_office",
                    ),
                    models.UniqueConstraint(
                        condition=Q(grade__isnull=False),
                        fields=("process", "grade"),
                        name="uniq_election_process_grade",
                    ),
                    models.UniqueConstraint(
                        condition=Q(group__isnull=False),
                        fields=("process", "group"),
                        name="uniq_election_process_group",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Candidate",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("slogan", models.CharField(blank=True, default="", max_length=255)),
                ("proposals", models.TextField(blank=True, default="")),
                (
                    "photo",
                    models.ImageField(blank=True, default="", upload_to=core.models.candidate_photo_upload_to),
                ),
                (
                    "color",
                    models.CharField(blank=True, default="", help_text="Ballot color, e.g. #1e88e5.", max_length=16),
                ),
                ("ballot_number", models.PositiveSmallIntegerField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("approved", "Approved"), ("rejected", "Rejected")],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("rejection_reason", models.TextField(blank=True, default="")),
                ("decided_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "decided_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "election",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="candidates",
                        to="core.election",
                    ),
                ),
                (
                    "student",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="candidacies",
                        to="core.student",
                    ),
                ),
            ],
            options={
                "ordering": ("created_at", "id"),
                "constraints": [
                    models.UniqueConstraint(
                        fields=("election", "student"),
                        name="uniq_candidate_election_student",
                    ),
                    models.UniqueConstraint(
                        condition=Q(ballot_number__isnull=False),
                        fields=("election", "ballot_number"),
                        name="uniq_candidate_election_ballot_number",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Vote",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "candidate",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="votes",
                        to="core.candidate",
                    ),
                ),
                (
                    "election",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="votes",
                        to="core.election",
                    ),
                ),
                (
                    "voter",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="votes",
                        to="core.student",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("election", "voter"),
                        name="uniq_vote_election_voter",
                    ),
                ],
                "indexes": [
                    models.Index(fields=["election", "created_at"], name="vote_el_at"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ElectionResult",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("votes", models.PositiveIntegerField(default=0)),
                ("percentage", models.FloatField(default=0.0)),
                ("position", models.PositiveSmallIntegerField()),
                ("is_winner", models.BooleanField(default=False)),
                ("computed_at", models.DateTimeField()),
                (
                    "candidate",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="results",
                        to="core.candidate",
                    ),
                ),
                (
                    "election",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="results",
                        to="core.election",
                    ),
                ),
            ],
            options={
                "ordering": ("election", "position"),
                "constraints": [
                    models.UniqueConstraint(
                        fields=("election", "position"),
                        name="uniq_electionresult_election_position",
                    ),
                    models.UniqueConstraint(
                        condition=Q(is_winner=True),
                        fields=("election",),
                        name="uniq_electionresult_one_winner",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="AuditLogEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("timestamp", models.DateTimeField(auto_now_add=True)),
                ("event_type", models.CharField(max_length=64)),
                ("payload", models.JSONField(blank=True, default=dict)),
                ("actor", models.CharField(blank=True, default="", max_length=150)),
                (
                    "election",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="audit_log",
                        to="core.election",
                    ),
                ),
                (
                    "process",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="audit_log",
                        to="core.electionprocess",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "Audit log entries",
                "ordering": ("timestamp", "id"),
                "indexes": [
                    models.Index(fields=["process", "timestamp"], name="audit_proc_ts"),
                    models.Index(fields=["process", "event_type"], name="audit_proc_ev"),
                ],
            },
        ),
    ]
