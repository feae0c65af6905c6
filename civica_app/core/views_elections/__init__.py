"""Election views package.

Public view functions are re-exported here so ``core.urls`` can reference
``views_elections.<view_name>``.
"""

from core.views_elections.candidates import (
    candidate_approve,
    candidate_register,
    candidate_reject,
    election_candidates,
)
from core.views_elections.process import (
    election_process_cancel,
    election_process_close,
    election_process_configuration,
    election_process_current,
    election_process_detail,
    election_process_phase,
    election_processes,
)
from core.views_elections.reports import (
    election_results_pdf,
    process_certificate_pdf,
    process_participation_pdf,
    process_results_xlsx,
)
from core.views_elections.results import election_results, process_results, process_stats
from core.views_elections.vote import vote_submit, voting_completed, voting_pending

__all__ = [
    "candidate_approve",
    "candidate_register",
    "candidate_reject",
    "election_candidates",
    "election_process_cancel",
    "election_process_close",
    "election_process_configuration",
    "election_process_current",
    "election_process_detail",
    "election_process_phase",
    "election_processes",
    "election_results",
    "election_results_pdf",
    "process_certificate_pdf",
    "process_participation_pdf",
    "process_results",
    "process_results_xlsx",
    "process_stats",
    "vote_submit",
    "voting_completed",
    "voting_pending",
]
