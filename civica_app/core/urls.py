from django.urls import path

from core import views_elections

urlpatterns = [
    path("elections/processes/", views_elections.election_processes, name="election-processes"),
    path(
        "elections/processes/current/",
        views_elections.election_process_current,
        name="election-process-current",
    ),
    path(
        "elections/processes/<int:process_id>/",
        views_elections.election_process_detail,
        name="election-process-detail",
    ),
    path(
        "elections/processes/<int:process_id>/configuration/",
        views_elections.election_process_configuration,
        name="election-process-configuration",
    ),
    path(
        "elections/processes/<int:process_id>/phase/",
        views_elections.election_process_phase,
        name="election-process-phase",
    ),
    path(
        "elections/processes/<int:process_id>/cancel/",
        views_elections.election_process_cancel,
        name="election-process-cancel",
    ),
    path(
        "elections/processes/<int:process_id>/close/",
        views_elections.election_process_close,
        name="election-process-close",
    ),
    path(
        "elections/processes/<int:process_id>/results/",
        views_elections.process_results,
        name="election-process-results",
    ),
    path(
        "elections/processes/<int:process_id>/stats/",
        views_elections.process_stats,
        name="election-process-stats",
    ),
    path(
        "elections/processes/<int:process_id>/report/certificate.pdf",
        views_elections.process_certificate_pdf,
        name="election-process-certificate-pdf",
    ),
    path(
        "elections/processes/<int:process_id>/report/participation.pdf",
        views_elections.process_participation_pdf,
        name="election-process-participation-pdf",
    ),
    path(
        "elections/processes/<int:process_id>/report/results.xlsx",
        views_elections.process_results_xlsx,
        name="election-process-results-xlsx",
    ),

    path("elections/candidates/", views_elections.candidate_register, name="election-candidate-register"),
    path(
        "elections/candidates/<int:candidate_id>/approve/",
        views_elections.candidate_approve,
        name="election-candidate-approve",
    ),
    path(
        "elections/candidates/<int:candidate_id>/reject/",
        views_elections.candidate_reject,
        name="election-candidate-reject",
    ),

    path("elections/voting/pending/", views_elections.voting_pending, name="election-voting-pending"),
    path("elections/voting/completed/", views_elections.voting_completed, name="election-voting-completed"),
    path("elections/vote/", views_elections.vote_submit, name="election-vote"),

    path(
        "elections/<int:election_id>/candidates/",
        views_elections.election_candidates,
        name="election-candidates",
    ),
    path("elections/<int:election_id>/results/", views_elections.election_results, name="election-results"),
    path("elections/<int:election_id>/report.pdf", views_elections.election_results_pdf, name="election-report-pdf"),
]
