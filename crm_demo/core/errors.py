"""Exception hierarchy for the demo generator."""
from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:  # pragma: no cover
    from crm_demo.domain.types import ValidationIssue


class DemoGeneratorError(Exception):
    """Base class for all generator errors."""


class PlanValidationError(DemoGeneratorError):
    """Raised when a configuration or plan has one or more validation issues."""

    def __init__(self, issues: Sequence["ValidationIssue"], message: str | None = None) -> None:
        self.issues = list(issues)
        summary = message or "; ".join(f"{issue.path}: {issue.message}" for issue in self.issues)
        super().__init__(summary or "Validation failed")


class JobNotFoundError(DemoGeneratorError):
    def __init__(self, kind: str, job_id: int) -> None:
        self.kind = kind
        self.job_id = job_id
        super().__init__(f"{kind} job {job_id} not found")


class TenantNotDemoError(DemoGeneratorError):
    """Raised when a patch or teardown targets a tenant the generator did not create."""


class PatchBlockedError(DemoGeneratorError):
    def __init__(self, blockers: Sequence[str]) -> None:
        self.blockers = list(blockers)
        super().__init__("Patch blocked: " + "; ".join(self.blockers))


class ConcurrentContinuationError(DemoGeneratorError):
    """Another invocation advanced the job while this one was working."""


class TenantNotFoundError(DemoGeneratorError):
    def __init__(self, tenant_id: int) -> None:
        self.tenant_id = tenant_id
        super().__init__(f"Tenant {tenant_id} not found")
