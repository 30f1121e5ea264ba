"""Database models for the CRM demo generator."""
from __future__ import annotations

from .base import Base
from .crm import Activity, Company, Contact, Deal
from .demo_jobs import (
    OVERRIDE_UNSET,
    DemoGenerationJob,
    DemoMetricOverride,
    DemoPatchJob,
)
from .tenancy import DemoTenantMetadata, PipelineStage, Tag, Tenant, User

__all__ = [
    "Base",
    "Activity",
    "Company",
    "Contact",
    "Deal",
    "DemoGenerationJob",
    "DemoMetricOverride",
    "DemoPatchJob",
    "DemoTenantMetadata",
    "OVERRIDE_UNSET",
    "PipelineStage",
    "Tag",
    "Tenant",
    "User",
]
