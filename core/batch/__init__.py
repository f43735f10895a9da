"""
Job orchestration sub-modules.

- orchestrator: submission, single-job procedure, multi-language fan-out
- job_handler: lifecycle transitions of one job
- result_aggregator: parent status from child outcomes
- rate_limiter: provider admission control
- cancellation: cooperative cancellation tokens
"""

from .cancellation import CancellationToken
from .job_handler import JobHandler, InvalidTransitionError, describe_error
from .rate_limiter import ProviderRateLimiter
from .result_aggregator import ResultAggregator, ParentOutcome
from .orchestrator import (
    JobOrchestrator,
    OrchestratorConfig,
    JobSubmission,
    JobDetails,
    JobSummary,
    SubmissionError,
    parse_target_languages,
)

__all__ = [
    # Lifecycle
    'JobHandler',
    'InvalidTransitionError',
    'describe_error',
    'CancellationToken',
    # Admission control
    'ProviderRateLimiter',
    # Aggregation
    'ResultAggregator',
    'ParentOutcome',
    # Orchestrator
    'JobOrchestrator',
    'OrchestratorConfig',
    'JobSubmission',
    'JobDetails',
    'JobSummary',
    'SubmissionError',
    'parse_target_languages',
]
