"""Legal job status transitions.

    discovering -> fetching -> finalizing -> complete
    discovering -> finalizing            (no fetch targets)
    any non-terminal -> failed

complete and failed are terminal.
"""

from pagewatch.jobs.job import JobStatus
from pagewatch.main.exceptions import InvalidTransitionException

TERMINAL_STATUSES = frozenset({JobStatus.COMPLETE, JobStatus.FAILED})

ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.DISCOVERING: frozenset(
        {JobStatus.FETCHING, JobStatus.FINALIZING, JobStatus.FAILED}
    ),
    JobStatus.FETCHING: frozenset({JobStatus.FINALIZING, JobStatus.FAILED}),
    JobStatus.FINALIZING: frozenset({JobStatus.COMPLETE, JobStatus.FAILED}),
    JobStatus.COMPLETE: frozenset(),
    JobStatus.FAILED: frozenset(),
}


def is_terminal(status: JobStatus) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: JobStatus, target: JobStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransitionException(current.value, target.value)
