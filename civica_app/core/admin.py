from __future__ import annotations

import logging
from typing import override

from django.contrib import admin, messages
from django.http import HttpRequest

from core import elections_services
from core.elections_services import ElectionError

from .models import (
    AcademicYear,
    AuditLogEntry,
    Candidate,
    ClassGroup,
    Election,
    ElectionProcess,
    ElectionResult,
    Enrollment,
    Grade,
    Institution,
    Student,
    Vote,
)

logger = logging.getLogger(__name__)


class ReadOnlyModelAdmin(admin.ModelAdmin):
    """Rows written only by election services; admins may look, not touch."""

    @override
    def has_add_permission(self, request: HttpRequest) -> bool:
        return False

    @override
    def has_change_permission(self, request: HttpRequest, obj=None) -> bool:
        return False

    @override
    def has_delete_permission(self, request: HttpRequest, obj=None) -> bool:
        return False


@admin.register(Institution)
class InstitutionAdmin(admin.ModelAdmin):
    list_display = ("name", "nit", "address")
    search_fields = ("name", "nit")
    ordering = ("name",)


@admin.register(AcademicYear)
class AcademicYearAdmin(admin.ModelAdmin):
    list_display = ("institution", "year", "is_current")
    list_filter = ("is_current", "institution")
    ordering = ("-year",)


@admin.register(Grade)
class GradeAdmin(admin.ModelAdmin):
    list_display = ("name", "institution", "ordinal")
    list_filter = ("institution",)
    ordering = ("institution", "ordinal", "name")


@admin.register(ClassGroup)
class ClassGroupAdmin(admin.ModelAdmin):
    list_display = ("__str__", "grade", "is_active")
    list_filter = ("is_active", "grade__institution")
    list_select_related = ("grade",)


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ("last_name", "first_name", "document_number", "institution", "user")
    search_fields = ("first_name", "last_name", "document_number", "user__username")
    list_filter = ("institution",)
    ordering = ("last_name", "first_name")


@admin.register(Enrollment)
class EnrollmentAdmin(admin.ModelAdmin):
    list_display = ("student", "group", "academic_year", "status")
    list_filter = ("status", "academic_year")
    search_fields = ("student__first_name", "student__last_name", "student__document_number")
    list_select_related = ("student", "group__grade", "academic_year")


class ElectionInline(admin.TabularInline):
    model = Election
    extra = 0
    fields = ("office", "grade", "group", "status", "tabulated_at")
    readonly_fields = ("office", "grade", "group", "tabulated_at")
    can_delete = False

    @override
    def has_add_permission(self, request: HttpRequest, obj=None) -> bool:
        # Elections come from the catalog generator.
        return False


@admin.register(ElectionProcess)
class ElectionProcessAdmin(admin.ModelAdmin):
    list_display = ("name", "institution", "academic_year", "phase", "closed_at")
    list_filter = ("phase", "institution")
    search_fields = ("name",)
    readonly_fields = ("phase", "closed_at", "created_by", "created_at", "updated_at")
    inlines = (ElectionInline,)
    actions = ("close_selected_processes",)

    @override
    def has_delete_permission(self, request: HttpRequest, obj=None) -> bool:
        return False

    @admin.action(description="Close voting and tabulate results")
    def close_selected_processes(self, request: HttpRequest, queryset) -> None:
        actor = request.user.get_username()
        for process in queryset:
            try:
                elections_services.close_process(process=process, actor=actor)
            except ElectionError as exc:
                self.message_user(request, f"{process.name}: {exc}", level=messages.ERROR)
            else:
                self.message_user(request, f"{process.name}: closed.", level=messages.SUCCESS)


@admin.register(Candidate)
class CandidateAdmin(admin.ModelAdmin):
    list_display = ("student", "election", "ballot_number", "status", "decided_at")
    list_filter = ("status", "election__office", "election__process")
    search_fields = ("student__first_name", "student__last_name", "slogan")
    list_select_related = ("student", "election")
    readonly_fields = ("status", "rejection_reason", "decided_by", "decided_at", "created_at")


@admin.register(Vote)
class VoteAdmin(ReadOnlyModelAdmin):
    # The selected candidate stays out of the list to keep ballots secret.
    list_display = ("election", "voter", "created_at")
    list_filter = ("election__process",)
    list_select_related = ("election", "voter")


@admin.register(ElectionResult)
class ElectionResultAdmin(ReadOnlyModelAdmin):
    list_display = ("election", "position", "candidate", "votes", "percentage", "is_winner", "computed_at")
    list_filter = ("is_winner", "election__process")
    ordering = ("election", "position")
    list_select_related = ("election", "candidate__student")


@admin.register(AuditLogEntry)
class AuditLogEntryAdmin(ReadOnlyModelAdmin):
    list_display = ("timestamp", "process", "election", "event_type", "actor")
    list_filter = ("event_type",)
    search_fields = ("event_type", "actor")
    ordering = ("-timestamp",)
