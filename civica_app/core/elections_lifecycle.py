"""Phase transition rules for election processes.

This module is the single source of truth for which phase may follow which.
Service functions call ``validate_phase_transition`` before flipping
``ElectionProcess.phase``.
"""

from core.models import ElectionProcess

Phase = ElectionProcess.Phase

# Linear progression; ``cancelled`` is handled separately below.
PHASE_SEQUENCE: tuple[str, ...] = (
    Phase.draft,
    Phase.registration,
    Phase.campaign,
    Phase.voting,
    Phase.closed,
)

TERMINAL_PHASES: frozenset[str] = frozenset({Phase.closed, Phase.cancelled})

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    Phase.draft: frozenset({Phase.registration, Phase.cancelled}),
    Phase.registration: frozenset({Phase.campaign, Phase.cancelled}),
    Phase.campaign: frozenset({Phase.voting, Phase.cancelled}),
    Phase.voting: frozenset({Phase.closed, Phase.cancelled}),
    Phase.closed: frozenset(),
    Phase.cancelled: frozenset(),
}

# Phases in which a pending candidacy may still be decided.
CANDIDACY_DECISION_PHASES: frozenset[str] = frozenset({Phase.registration, Phase.campaign})


class PhaseTransitionRejected(ValueError):
    def __init__(self, current: str, target: str) -> None:
        self.current = str(current)
        self.target = str(target)
        super().__init__(f"Cannot move an election process from '{self.current}' to '{self.target}'.")


def next_phase(current: str) -> str | None:
    """Return the phase that follows ``current`` in the normal sequence."""
    try:
        idx = PHASE_SEQUENCE.index(current)
    except ValueError:
        return None
    if idx + 1 >= len(PHASE_SEQUENCE):
        return None
    return PHASE_SEQUENCE[idx + 1]


def is_terminal(phase: str) -> bool:
    return phase in TERMINAL_PHASES


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def validate_phase_transition(current: str, target: str) -> None:
    if target not in Phase.values:
        raise PhaseTransitionRejected(current, target)
    if not can_transition(current, target):
        raise PhaseTransitionRejected(current, target)
