"""Election catalog generation.

A process owns one election per enabled institution-wide office, one per
grade of its institution and one per active group, depending on the office
flags. ``build_election_catalog`` is pure; ``generate_elections_for_process``
loads the institution's structure and persists the seats.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from core.models import ClassGroup, Election, ElectionProcess, Grade

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OfficeFlags:
    personero: bool
    contralor: bool
    grade_representative: bool
    group_representative: bool

    @classmethod
    def from_process(cls, process: ElectionProcess) -> OfficeFlags:
        return cls(
            personero=bool(process.enable_personero),
            contralor=bool(process.enable_contralor),
            grade_representative=bool(process.enable_grade_representative),
            group_representative=bool(process.enable_group_representative),
        )


@dataclass(frozen=True)
class ElectionSeat:
    office: str
    grade_id: int | None = None
    group_id: int | None = None


def build_election_catalog(
    *,
    flags: OfficeFlags,
    grade_ids: Iterable[int],
    active_group_ids: Iterable[int],
) -> list[ElectionSeat]:
    seats: list[ElectionSeat] = []

    if flags.personero:
        seats.append(ElectionSeat(office=Election.Office.personero))
    if flags.contralor:
        seats.append(ElectionSeat(office=Election.Office.contralor))

    if flags.grade_representative:
        seats.extend(ElectionSeat(office=Election.Office.grade_representative, grade_id=gid) for gid in grade_ids)

    if flags.group_representative:
        seats.extend(
            ElectionSeat(office=Election.Office.group_representative, group_id=gid) for gid in active_group_ids
        )

    return seats


def generate_elections_for_process(process: ElectionProcess) -> list[Election]:
    """Create the process's elections. Callers own the transaction."""
    grade_ids = list(
        Grade.objects.filter(institution_id=process.institution_id)
        .order_by("ordinal", "name", "id")
        .values_list("id", flat=True)
    )
    active_group_ids = list(
        ClassGroup.objects.active()
        .for_institution(process.institution_id)
        .order_by("grade__ordinal", "name", "id")
        .values_list("id", flat=True)
    )

    seats = build_election_catalog(
        flags=OfficeFlags.from_process(process),
        grade_ids=grade_ids,
        active_group_ids=active_group_ids,
    )

    created = Election.objects.bulk_create(
        [
            Election(
                process=process,
                office=seat.office,
                grade_id=seat.grade_id,
                group_id=seat.group_id,
            )
            for seat in seats
        ]
    )
    logger.info(
        "Generated election catalog process_id=%s elections=%s grades=%s active_groups=%s",
        process.pk,
        len(created),
        len(grade_ids),
        len(active_group_ids),
    )
    return created
