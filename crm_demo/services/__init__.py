"""Service layer entrypoints for the demo generator."""

from .demo_service import (
    ContinueJob,
    CreateJob,
    GetJob,
    GetTenantKpis,
    PreviewPlan,
    RetryJob,
    ValidatePlan,
)
from .patch_service import PatchService
from .reporting import ReportingService
from .tenant_service import DemoTenantService

__all__ = [
    "ContinueJob",
    "CreateJob",
    "DemoTenantService",
    "GetJob",
    "GetTenantKpis",
    "PatchService",
    "PreviewPlan",
    "ReportingService",
    "RetryJob",
    "ValidatePlan",
]
