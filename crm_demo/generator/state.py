"""Persisted state of a chunked generation job.

The state travels as JSON in ``demo_generation_job.generation_state`` and is
tagged with ``version`` so older payloads can be rejected explicitly instead of
being misread.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Optional

from crm_demo.domain.types import to_decimal

STATE_VERSION = 1


class UnsupportedStateVersion(ValueError):
    pass


@dataclass(slots=True)
class StageIds:
    won: list[int] = field(default_factory=list)
    lost: list[int] = field(default_factory=list)
    # (stage id, probability) for weighted open-stage picks
    open: list[tuple[int, int]] = field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        return {"won": self.won, "lost": self.lost, "open": [list(item) for item in self.open]}

    @classmethod
    def from_wire(cls, payload: Optional[Mapping[str, Any]]) -> "StageIds":
        if not payload:
            return cls()
        return cls(
            won=[int(item) for item in payload.get("won", [])],
            lost=[int(item) for item in payload.get("lost", [])],
            open=[(int(item[0]), int(item[1])) for item in payload.get("open", [])],
        )

    def is_ready(self) -> bool:
        return bool(self.won and self.open)


@dataclass(slots=True)
class MonthActuals:
    """Running totals of what the generator has inserted for one month."""

    leads: int = 0
    contacts: int = 0
    companies: int = 0
    deals: int = 0
    closed_won_count: int = 0
    closed_won_value: Decimal = Decimal("0")
    pipeline_value: Decimal = Decimal("0")

    def to_wire(self) -> dict[str, Any]:
        return {
            "leads": self.leads,
            "contacts": self.contacts,
            "companies": self.companies,
            "deals": self.deals,
            "closedWonCount": self.closed_won_count,
            "closedWonValue": str(self.closed_won_value),
            "pipelineValue": str(self.pipeline_value),
        }

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "MonthActuals":
        return cls(
            leads=int(payload.get("leads", 0)),
            contacts=int(payload.get("contacts", 0)),
            companies=int(payload.get("companies", 0)),
            deals=int(payload.get("deals", 0)),
            closed_won_count=int(payload.get("closedWonCount", 0)),
            closed_won_value=to_decimal(payload.get("closedWonValue", "0")),
            pipeline_value=to_decimal(payload.get("pipelineValue", "0")),
        )


@dataclass(slots=True)
class GenerationState:
    """Everything later phases need to link foreign keys and resume mid-phase."""

    reference_time: datetime
    version: int = STATE_VERSION
    tenant_id: Optional[int] = None
    user_ids: list[int] = field(default_factory=list)
    stages: StageIds = field(default_factory=StageIds)
    tag_ids: list[int] = field(default_factory=list)
    company_ids: dict[str, list[int]] = field(default_factory=dict)
    # month -> [[contact id, status], ...]
    contacts: dict[str, list[tuple[int, str]]] = field(default_factory=dict)
    deal_ids: dict[str, list[int]] = field(default_factory=dict)
    cursor: int = 0
    activities_created: int = 0
    actuals: dict[str, MonthActuals] = field(default_factory=dict)

    def month_actuals(self, month: str) -> MonthActuals:
        if month not in self.actuals:
            self.actuals[month] = MonthActuals()
        return self.actuals[month]

    def companies_up_to(self, month: str) -> list[int]:
        return [
            company_id
            for key in sorted(self.company_ids)
            if key <= month
            for company_id in self.company_ids[key]
        ]

    def contacts_up_to(self, month: str) -> list[tuple[int, str]]:
        return [
            entry for key in sorted(self.contacts) if key <= month for entry in self.contacts[key]
        ]

    @property
    def company_count(self) -> int:
        return sum(len(ids) for ids in self.company_ids.values())

    @property
    def contact_count(self) -> int:
        return sum(len(entries) for entries in self.contacts.values())

    @property
    def deal_count(self) -> int:
        return sum(len(ids) for ids in self.deal_ids.values())

    def summary(self) -> dict[str, int]:
        return {
            "users": len(self.user_ids),
            "companies": self.company_count,
            "contacts": self.contact_count,
            "deals": self.deal_count,
            "activities": self.activities_created,
        }

    def to_wire(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "referenceTime": self.reference_time.isoformat(),
            "tenantId": self.tenant_id,
            "userIds": self.user_ids,
            "stages": self.stages.to_wire(),
            "tagIds": self.tag_ids,
            "companyIds": self.company_ids,
            "contacts": {month: [list(entry) for entry in entries] for month, entries in self.contacts.items()},
            "dealIds": self.deal_ids,
            "cursor": self.cursor,
            "activitiesCreated": self.activities_created,
            "actuals": {month: actuals.to_wire() for month, actuals in self.actuals.items()},
        }

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "GenerationState":
        version = int(payload.get("version", 0))
        if version != STATE_VERSION:
            raise UnsupportedStateVersion(f"Unsupported generation state version: {version}")
        return cls(
            version=version,
            reference_time=datetime.fromisoformat(payload["referenceTime"]),
            tenant_id=payload.get("tenantId"),
            user_ids=[int(item) for item in payload.get("userIds", [])],
            stages=StageIds.from_wire(payload.get("stages")),
            tag_ids=[int(item) for item in payload.get("tagIds", [])],
            company_ids={
                month: [int(item) for item in ids]
                for month, ids in (payload.get("companyIds") or {}).items()
            },
            contacts={
                month: [(int(entry[0]), str(entry[1])) for entry in entries]
                for month, entries in (payload.get("contacts") or {}).items()
            },
            deal_ids={
                month: [int(item) for item in ids]
                for month, ids in (payload.get("dealIds") or {}).items()
            },
            cursor=int(payload.get("cursor", 0)),
            activities_created=int(payload.get("activitiesCreated", 0)),
            actuals={
                month: MonthActuals.from_wire(item)
                for month, item in (payload.get("actuals") or {}).items()
            },
        )
