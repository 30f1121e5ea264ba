"""Build CRM row payloads for one month of companies, contacts, deals or activities.

Both the chunked generator and the patch engine create records through
:class:`RecordBuilder`. It never touches the database: it returns
:class:`PlannedRow` items that the caller inserts in batches.
"""
from __future__ import annotations

import unicodedata
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from itertools import islice
from typing import Any, Iterable, Iterator, Mapping, Optional, Sequence, TypeVar

from crm_demo.domain.enums import ActivityType, ContactStatus, StageType
from crm_demo.domain.types import MonthlyMetricTargets, RealismConfig
from crm_demo.generator.allocators import MonthlyAllocator, ValueAllocator, ValueConstraints
from crm_demo.generator.locales import LocaleProvider, get_provider
from crm_demo.generator.rng import SeededRNG
from crm_demo.generator.state import StageIds
from crm_demo.generator.templates import (
    ACTIVITY_DESCRIPTIONS,
    ACTIVITY_SUBJECTS,
    ACTIVITY_TYPES,
    COMPANY_SIZE_WEIGHTS,
    COMPANY_SIZES,
    DEAL_TYPES,
    IndustryTemplate,
    activity_type_weights,
)

T = TypeVar("T")

NAME_ATTEMPTS = 10
EMAIL_ATTEMPTS = 5
COMPANY_LINK_RATE = 0.7
DEAL_LINK_RATE = 0.6

NON_LEAD_STATUSES = (
    ContactStatus.PROSPECT,
    ContactStatus.CUSTOMER,
    ContactStatus.CHURNED,
    ContactStatus.OTHER,
)

ACTIVITY_MULTIPLIER = {
    ContactStatus.CUSTOMER.value: 1.5,
    ContactStatus.PROSPECT.value: 1.0,
    ContactStatus.CHURNED.value: 0.75,
    ContactStatus.LEAD.value: 0.5,
    ContactStatus.OTHER.value: 0.5,
}


def chunked(items: Sequence[T] | Iterable[T], size: int) -> Iterator[list[T]]:
    if size <= 0:
        raise ValueError("size must be positive")
    if isinstance(items, Sequence):
        for start in range(0, len(items), size):
            yield list(items[start : start + size])
        return

    iterator = iter(items)
    while True:
        chunk = list(islice(iterator, size))
        if not chunk:
            break
        yield chunk


def normalize_display_key(value: str) -> str:
    """Produce an accent-insensitive lowercase key for uniqueness checks."""
    normalized = unicodedata.normalize("NFKD", value)
    without_accents = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    return " ".join(without_accents.lower().split())


@dataclass(frozen=True, slots=True)
class Provenance:
    """Which job a generated row belongs to."""

    job_id: Optional[int] = None
    patch_job_id: Optional[int] = None

    def columns(self, month: str) -> dict[str, Any]:
        return {
            "demo_generated": True,
            "demo_job_id": self.job_id,
            "demo_patch_job_id": self.patch_job_id,
            "demo_source_month": month,
        }


@dataclass(slots=True)
class BuildContext:
    tenant_id: int
    country: str
    currency: str
    template: IndustryTemplate
    user_ids: list[int]
    stages: StageIds
    reference_time: datetime
    realism: RealismConfig = field(default_factory=RealismConfig)
    provenance: Provenance = field(default_factory=Provenance)


@dataclass(frozen=True, slots=True)
class ContactRef:
    id: int
    status: str
    created_at: datetime
    company_id: Optional[int] = None


@dataclass(slots=True)
class PlannedRow:
    """Column values for one new row, plus what the caller needs to track it."""

    month: str
    values: dict[str, Any]
    # contact status or deal outcome
    tag: Optional[str] = None


class RecordBuilder:
    def __init__(self, context: BuildContext, rng: SeededRNG) -> None:
        self.context = context
        self.rng = rng
        self.template = context.template
        self.provider: LocaleProvider = get_provider(context.country, rng)
        self.allocator = MonthlyAllocator(rng, until=context.reference_time)
        self.values = ValueAllocator(rng)

    # ------------------------------------------------------------------
    # helpers

    def _row(self, month: str, created_at: datetime, **values: Any) -> dict[str, Any]:
        return {
            "tenant_id": self.context.tenant_id,
            "created_at": created_at,
            **values,
            **self.context.provenance.columns(month),
        }

    def _owner(self) -> Optional[int]:
        return self.rng.pick(self.context.user_ids) if self.context.user_ids else None

    def value_constraints(self) -> ValueConstraints:
        deals = self.template.deals
        return ValueConstraints(
            min_value=deals.min_value,
            max_value=deals.max_value,
            avg_value=deals.avg_value,
            whale_ratio=self.context.realism.whale_ratio / 100,
        )

    def unique_company_name(self, taken: set[str]) -> str:
        name = self.provider.company_name(self.template.company_patterns)
        for _ in range(NAME_ATTEMPTS):
            if normalize_display_key(name) not in taken:
                break
            name = self.provider.company_name(self.template.company_patterns)
        taken.add(normalize_display_key(name))
        return name

    def unique_email(self, first: str, last: str, taken: set[str]) -> str:
        email = self.provider.email(first, last)
        for _ in range(EMAIL_ATTEMPTS):
            if email not in taken:
                break
            email = self.provider.email(first, last)
        if email in taken:
            local, _, domain = email.partition("@")
            email = f"{local}{self.rng.int(100, 9999)}@{domain}"
        taken.add(email)
        return email

    # ------------------------------------------------------------------
    # entities

    def companies(self, month: str, count: int, taken_names: set[str]) -> list[PlannedRow]:
        rows: list[PlannedRow] = []
        for day in self.allocator.slots(month, count):
            name = self.unique_company_name(taken_names)
            domain = self.provider.company_domain(name)
            address = self.provider.full_address()
            rows.append(
                PlannedRow(
                    month,
                    self._row(
                        month,
                        self.allocator.generate_timestamp(day),
                        name=name,
                        domain=domain,
                        industry=self.template.name,
                        size=self.rng.pick_weighted(COMPANY_SIZES, COMPANY_SIZE_WEIGHTS),
                        owner_id=self._owner(),
                        address=address.street,
                        city=address.city,
                        state=address.state,
                        country=address.country,
                        postal_code=address.postal_code,
                        phone=self.provider.phone(),
                        website=f"https://www.{domain}",
                    ),
                )
            )
        return rows

    def contact_statuses(self, count: int, leads: int) -> list[str]:
        lead_count = max(0, min(leads, count))
        weights = (40, 30, self.context.realism.drop_off_rate, 10)
        statuses = [ContactStatus.LEAD.value] * lead_count
        statuses.extend(
            self.rng.pick_weighted(NON_LEAD_STATUSES, weights).value
            for _ in range(count - lead_count)
        )
        return self.rng.shuffle(statuses)

    def contacts(
        self,
        month: str,
        count: int,
        leads: int,
        company_ids: Sequence[int],
        taken_emails: set[str],
    ) -> list[PlannedRow]:
        rows: list[PlannedRow] = []
        statuses = self.contact_statuses(count, leads)
        for day, status in zip(self.allocator.slots(month, count), statuses):
            first = self.provider.first_name()
            last = self.provider.last_name()
            company_id = None
            if company_ids and self.rng.bool(COMPANY_LINK_RATE):
                company_id = self.rng.pick(company_ids)
            rows.append(
                PlannedRow(
                    month,
                    self._row(
                        month,
                        self.allocator.generate_timestamp(day),
                        first_name=first,
                        last_name=last,
                        email=self.unique_email(first, last, taken_emails),
                        phone=self.provider.phone(),
                        status=status,
                        company_id=company_id,
                        owner_id=self._owner(),
                    ),
                    tag=status,
                )
            )
        return rows

    def _deal_contact(self, contacts: Sequence[ContactRef]) -> Optional[ContactRef]:
        preferred = [
            contact
            for contact in contacts
            if contact.status in (ContactStatus.PROSPECT.value, ContactStatus.CUSTOMER.value)
        ]
        pool = preferred or list(contacts)
        return self.rng.pick(pool) if pool else None

    def _stage_for(self, outcome: StageType) -> tuple[int, int]:
        stages = self.context.stages
        if outcome is StageType.WON and stages.won:
            return self.rng.pick(stages.won), 100
        if outcome is StageType.LOST and stages.lost:
            return self.rng.pick(stages.lost), 0
        stage_id, probability = self.rng.pick_weighted(
            stages.open, [max(1, probability) for _, probability in stages.open]
        )
        return stage_id, probability

    def deal(
        self,
        month: str,
        created_at: datetime,
        value: Decimal,
        outcome: StageType,
        contacts: Sequence[ContactRef],
        company_names: Mapping[int, str],
    ) -> PlannedRow:
        contact = self._deal_contact(contacts)
        company_id = contact.company_id if contact is not None else None
        if company_id is None and company_names and self.rng.bool(0.5):
            company_id = self.rng.pick(sorted(company_names))
        company_name = company_names.get(company_id) if company_id is not None else None
        if company_name is None:
            company_name = self.provider.company_name(self.template.company_patterns)
        stage_id, probability = self._stage_for(outcome)
        closed_at = None
        if outcome is not StageType.OPEN:
            cycle = self.template.deals
            closed_at = min(
                created_at + timedelta(days=self.rng.int(cycle.cycle_days_min, cycle.cycle_days_max)),
                max(created_at, self.context.reference_time),
            )
        return PlannedRow(
            month,
            self._row(
                month,
                created_at,
                name=f"{company_name} - {self.rng.pick(DEAL_TYPES)}",
                value=value,
                currency=self.context.currency,
                stage_id=stage_id,
                contact_id=contact.id if contact is not None else None,
                company_id=company_id,
                owner_id=self._owner(),
                probability=probability,
                expected_close_date=(created_at + timedelta(days=self.rng.int(7, 90))).date(),
                closed_at=closed_at,
            ),
            tag=outcome.value,
        )

    def deals(
        self,
        month: str,
        targets: MonthlyMetricTargets,
        contacts: Sequence[ContactRef],
        company_names: Mapping[int, str],
    ) -> list[PlannedRow]:
        count = targets.deals_created
        if count <= 0:
            return []
        pipeline = targets.pipeline_added_value
        won_value = targets.closed_won_value
        if pipeline <= 0 < won_value:
            pipeline = won_value
        values = self.values.allocate_pipeline_values(
            count, targets.closed_won_count, pipeline, won_value, self.value_constraints()
        )
        outcomes = self.rng.shuffle(
            [(StageType.WON, value) for value in values.won]
            + [(StageType.OPEN, value) for value in values.open]
            + [(StageType.LOST, value) for value in values.lost]
        )
        return [
            self.deal(month, self.allocator.generate_timestamp(day), value, outcome, contacts, company_names)
            for day, (outcome, value) in zip(self.allocator.slots(month, count), outcomes)
        ]

    def activity(
        self,
        month: str,
        created_at: datetime,
        contact: Optional[ContactRef],
        deal_ids: Sequence[int],
    ) -> PlannedRow:
        ratio = self.template.activities.call_to_email_ratio
        kind: ActivityType = self.rng.pick_weighted(ACTIVITY_TYPES, activity_type_weights(ratio))
        duration = None
        if kind is ActivityType.CALL:
            duration = self.rng.int(5, 45)
        elif kind is ActivityType.MEETING:
            duration = self.rng.int(30, 120)
        deal_id = None
        if deal_ids and self.rng.bool(DEAL_LINK_RATE):
            deal_id = self.rng.pick(deal_ids)
        return PlannedRow(
            month,
            self._row(
                month,
                created_at,
                type=kind.value,
                subject=self.rng.pick(ACTIVITY_SUBJECTS[kind]),
                description=self.rng.pick(ACTIVITY_DESCRIPTIONS[kind]),
                contact_id=contact.id if contact is not None else None,
                deal_id=deal_id,
                owner_id=self._owner(),
                scheduled_at=created_at if kind in (ActivityType.TASK, ActivityType.MEETING) else None,
                completed_at=created_at if self.rng.bool(0.7) else None,
                duration_minutes=duration,
            ),
            tag=kind.value,
        )

    def contact_activities(
        self, contacts: Sequence[ContactRef], deals_by_contact: Mapping[int, Sequence[int]]
    ) -> list[PlannedRow]:
        """Activity history for each contact, from its creation up to the reference time."""

        average = self.template.activities.avg_per_contact
        until = self.context.reference_time
        rows: list[PlannedRow] = []
        for contact in contacts:
            multiplier = ACTIVITY_MULTIPLIER.get(contact.status, 1.0)
            count = round(self.rng.int(0, average) * multiplier)
            for _ in range(count):
                if contact.created_at < until:
                    created_at = self.rng.business_datetime(contact.created_at, until)
                    created_at = min(max(created_at, contact.created_at), until)
                else:
                    created_at = contact.created_at
                rows.append(
                    self.activity(
                        f"{created_at.year:04d}-{created_at.month:02d}",
                        created_at,
                        contact,
                        deals_by_contact.get(contact.id, ()),
                    )
                )
        return rows

    def month_activities(
        self,
        month: str,
        count: int,
        contacts: Sequence[ContactRef],
        deals_by_contact: Mapping[int, Sequence[int]],
    ) -> list[PlannedRow]:
        """Exactly ``count`` activities dated inside ``month``."""

        rows: list[PlannedRow] = []
        for day in self.allocator.slots(month, count):
            contact = self.rng.pick(contacts) if contacts else None
            deal_ids = deals_by_contact.get(contact.id, ()) if contact is not None else ()
            rows.append(self.activity(month, self.allocator.generate_timestamp(day), contact, deal_ids))
        return rows
