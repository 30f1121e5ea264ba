"""Lookups shared by the generator, the patch engine and the services."""
from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence, TypeVar

from sqlalchemy import func, select

from crm_demo.models import (
    Activity,
    Company,
    Contact,
    Deal,
    DemoGenerationJob,
    DemoPatchJob,
    DemoTenantMetadata,
    PipelineStage,
    Tenant,
    User,
)
from crm_demo.generator.records import ContactRef, normalize_display_key
from crm_demo.generator.state import StageIds

from .base import BaseRepository

CrmModel = TypeVar("CrmModel", Company, Contact, Deal, Activity)


class DemoRepository(BaseRepository):
    def get_generation_job(self, job_id: int) -> Optional[DemoGenerationJob]:
        return self._session.get(DemoGenerationJob, job_id)

    def get_patch_job(self, job_id: int) -> Optional[DemoPatchJob]:
        return self._session.get(DemoPatchJob, job_id)

    def get_tenant(self, tenant_id: int) -> Optional[Tenant]:
        return self._session.get(Tenant, tenant_id)

    def get_tenant_metadata(self, tenant_id: int) -> Optional[DemoTenantMetadata]:
        return self._session.scalars(
            select(DemoTenantMetadata).where(DemoTenantMetadata.tenant_id == tenant_id)
        ).first()

    def demo_tenant_ids(self) -> list[int]:
        return list(
            self._session.scalars(
                select(DemoTenantMetadata.tenant_id).order_by(DemoTenantMetadata.tenant_id)
            )
        )

    def user_ids(self, tenant_id: int) -> list[int]:
        return list(
            self._session.scalars(
                select(User.id)
                .where(User.tenant_id == tenant_id, User.deleted_at.is_(None))
                .order_by(User.id)
            )
        )

    def stage_ids(self, tenant_id: int) -> StageIds:
        stages = StageIds()
        rows = self._session.execute(
            select(PipelineStage.id, PipelineStage.probability, PipelineStage.is_won, PipelineStage.is_lost)
            .where(PipelineStage.tenant_id == tenant_id, PipelineStage.deleted_at.is_(None))
            .order_by(PipelineStage.position, PipelineStage.id)
        )
        for row in rows:
            if row.is_won:
                stages.won.append(int(row.id))
            elif row.is_lost:
                stages.lost.append(int(row.id))
            else:
                stages.open.append((int(row.id), int(row.probability or 0)))
        return stages

    def contact_refs(
        self,
        tenant_id: int,
        *,
        job_id: Optional[int] = None,
        created_before: Optional[datetime] = None,
    ) -> list[ContactRef]:
        statement = select(Contact.id, Contact.status, Contact.created_at, Contact.company_id).where(
            Contact.tenant_id == tenant_id, Contact.deleted_at.is_(None)
        )
        if job_id is not None:
            statement = statement.where(Contact.demo_job_id == job_id)
        if created_before is not None:
            statement = statement.where(Contact.created_at < created_before)
        return [
            ContactRef(
                id=int(row.id),
                status=row.status,
                created_at=self._coerce_datetime(row.created_at),
                company_id=row.company_id,
            )
            for row in self._session.execute(statement.order_by(Contact.id))
        ]

    def deals_by_contact(self, tenant_id: int, *, job_id: Optional[int] = None) -> dict[int, list[int]]:
        statement = select(Deal.contact_id, Deal.id).where(
            Deal.tenant_id == tenant_id, Deal.deleted_at.is_(None), Deal.contact_id.is_not(None)
        )
        if job_id is not None:
            statement = statement.where(Deal.demo_job_id == job_id)
        grouped: dict[int, list[int]] = defaultdict(list)
        for row in self._session.execute(statement.order_by(Deal.id)):
            grouped[int(row.contact_id)].append(int(row.id))
        return dict(grouped)

    def company_names(
        self,
        tenant_id: int,
        *,
        ids: Optional[Iterable[int]] = None,
        created_before: Optional[datetime] = None,
    ) -> dict[int, str]:
        statement = select(Company.id, Company.name).where(
            Company.tenant_id == tenant_id, Company.deleted_at.is_(None)
        )
        if ids is not None:
            statement = statement.where(Company.id.in_(list(ids)))
        if created_before is not None:
            statement = statement.where(Company.created_at < created_before)
        return {int(row.id): row.name for row in self._session.execute(statement.order_by(Company.id))}

    def company_name_keys(self, tenant_id: int) -> set[str]:
        names = self._session.scalars(select(Company.name).where(Company.tenant_id == tenant_id))
        return {normalize_display_key(name) for name in names}

    def contact_emails(self, tenant_id: int) -> set[str]:
        emails = self._session.scalars(
            select(Contact.email).where(Contact.tenant_id == tenant_id, Contact.email.is_not(None))
        )
        return {email for email in emails}

    def count_rows(self, model: type[CrmModel], tenant_id: int, *, job_id: Optional[int] = None) -> int:
        statement = select(func.count()).select_from(model).where(
            model.tenant_id == tenant_id, model.deleted_at.is_(None)
        )
        if job_id is not None:
            statement = statement.where(model.demo_job_id == job_id)
        return int(self._session.scalar(statement) or 0)

    def demo_rows(
        self, model: type[CrmModel], tenant_id: int, month: str
    ) -> Sequence[CrmModel]:
        """Live generated rows of ``month``, newest first."""

        return list(
            self._session.scalars(
                select(model)
                .where(
                    model.tenant_id == tenant_id,
                    model.demo_generated.is_(True),
                    model.demo_source_month == month,
                    model.deleted_at.is_(None),
                )
                .order_by(model.created_at.desc(), model.id.desc())
            )
        )

    def demo_deals_with_stage(
        self, tenant_id: int, month: str
    ) -> list[tuple[Deal, PipelineStage]]:
        rows = self._session.execute(
            select(Deal, PipelineStage)
            .join(PipelineStage, PipelineStage.id == Deal.stage_id)
            .where(
                Deal.tenant_id == tenant_id,
                Deal.demo_generated.is_(True),
                Deal.demo_source_month == month,
                Deal.deleted_at.is_(None),
            )
            .order_by(Deal.created_at.desc(), Deal.id.desc())
        )
        return [(row[0], row[1]) for row in rows]

    def referenced_ids(self, column: Any, tenant_id: int) -> set[int]:
        """Distinct non-null values of a foreign-key ``column`` over live rows."""

        model = column.class_
        values = self._session.scalars(
            select(column)
            .where(model.tenant_id == tenant_id, model.deleted_at.is_(None), column.is_not(None))
            .distinct()
        )
        return {int(value) for value in values}

    def count_patch_rows(self, model: type[CrmModel], tenant_id: int, patch_job_id: int) -> int:
        statement = select(func.count()).select_from(model).where(
            model.tenant_id == tenant_id, model.demo_patch_job_id == patch_job_id
        )
        return int(self._session.scalar(statement) or 0)
