"""Teardown of generated demo tenants."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from crm_demo.core.errors import TenantNotDemoError, TenantNotFoundError
from crm_demo.core.log import get_logger, timeit
from crm_demo.domain.enums import JobStatus
from crm_demo.models import (
    Activity,
    Company,
    Contact,
    Deal,
    DemoGenerationJob,
    DemoMetricOverride,
    DemoPatchJob,
    DemoTenantMetadata,
    PipelineStage,
    Tag,
    User,
)
from crm_demo.repositories.demo_repository import DemoRepository

LOGGER = get_logger(__name__)

# children before parents
_TENANT_TABLES = (
    ("activities", Activity),
    ("deals", Deal),
    ("contacts", Contact),
    ("companies", Company),
    ("tags", Tag),
    ("pipelineStages", PipelineStage),
    ("metricOverrides", DemoMetricOverride),
    ("metadata", DemoTenantMetadata),
    ("users", User),
)


@dataclass
class TeardownReport:
    tenant_id: int
    deleted: dict[str, int] = field(default_factory=dict)
    stopped_jobs: list[int] = field(default_factory=list)

    @property
    def total_deleted(self) -> int:
        return sum(self.deleted.values())

    def to_wire(self) -> dict[str, object]:
        return {
            "tenantId": self.tenant_id,
            "deleted": dict(self.deleted),
            "totalDeleted": self.total_deleted,
            "stoppedJobs": list(self.stopped_jobs),
        }


class DemoTenantService:
    def __init__(self, session: Session, *, now: Callable[[], datetime] = datetime.now) -> None:
        self._session = session
        self._now = now
        self._repository = DemoRepository(session)

    def delete_tenant(self, tenant_id: int) -> TeardownReport:
        """Remove a demo tenant and every row it owns in one transaction.

        Generation jobs still pointing at the tenant are detached; a job that is
        still pending or running is marked failed, so a later continuation of it
        no-ops instead of writing into a tenant that no longer exists.
        """

        tenant = self._repository.get_tenant(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(tenant_id)
        metadata = self._repository.get_tenant_metadata(tenant_id)
        if metadata is None or not metadata.is_demo_generated:
            raise TenantNotDemoError(f"Tenant {tenant_id} is not a demo-generated tenant")

        report = TeardownReport(tenant_id=tenant_id)
        try:
            with timeit(f"delete tenant {tenant_id}", logger=LOGGER, unit="rows") as timer:
                self._detach_jobs(tenant_id, report)
                for label, model in _TENANT_TABLES:
                    result = self._session.execute(delete(model).where(model.tenant_id == tenant_id))
                    report.deleted[label] = result.rowcount or 0
                self._session.delete(tenant)
                self._session.flush()
                report.deleted["tenant"] = 1
                timer.add(report.total_deleted)
            self._session.commit()
        except Exception:
            self._session.rollback()
            LOGGER.exception("Failed to delete demo tenant %s", tenant_id)
            raise
        LOGGER.info("Deleted demo tenant %s (%s rows)", tenant_id, report.total_deleted)
        return report

    def delete_all(self) -> list[TeardownReport]:
        return [self.delete_tenant(tenant_id) for tenant_id in self._repository.demo_tenant_ids()]

    def _detach_jobs(self, tenant_id: int, report: TeardownReport) -> None:
        jobs = self._session.scalars(
            select(DemoGenerationJob).where(DemoGenerationJob.created_tenant_id == tenant_id)
        ).all()
        now = self._now()
        for job in jobs:
            if job.status in (JobStatus.PENDING.value, JobStatus.RUNNING.value):
                job.status = JobStatus.FAILED.value
                job.error_message = f"Tenant {tenant_id} was deleted during generation"
                job.completed_at = now
                report.stopped_jobs.append(job.id)
            job.created_tenant_id = None
            job.updated_at = now
        # ORM updates bump ``revision`` so an in-flight continuation stops at its next commit
        self._session.flush()
        self._session.execute(
            update(DemoPatchJob)
            .where(DemoPatchJob.tenant_id == tenant_id)
            .values(tenant_id=None)
            .execution_options(synchronize_session=False)
        )
