"""ORM models for the CRM entities the generator produces."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import ID_TYPE, Base, DemoProvenanceMixin, TimestampMixin


class Company(DemoProvenanceMixin, TimestampMixin, Base):
    __tablename__ = "company"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenant.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    domain: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    industry: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    size: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    owner_id: Mapped[Optional[int]] = mapped_column(ForeignKey("crm_user.id"), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    postal_code: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)


class Contact(DemoProvenanceMixin, TimestampMixin, Base):
    """A person in the CRM; ``status`` drives the lead funnel."""

    __tablename__ = "contact"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenant.id"), nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(80), nullable=False)
    last_name: Mapped[str] = mapped_column(String(80), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(190), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="lead")
    company_id: Mapped[Optional[int]] = mapped_column(ForeignKey("company.id"), nullable=True)
    owner_id: Mapped[Optional[int]] = mapped_column(ForeignKey("crm_user.id"), nullable=True)


class Deal(DemoProvenanceMixin, TimestampMixin, Base):
    __tablename__ = "deal"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenant.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False, default=Decimal("0"))
    currency: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)
    stage_id: Mapped[int] = mapped_column(ForeignKey("pipeline_stage.id"), nullable=False)
    contact_id: Mapped[Optional[int]] = mapped_column(ForeignKey("contact.id"), nullable=True)
    company_id: Mapped[Optional[int]] = mapped_column(ForeignKey("company.id"), nullable=True)
    owner_id: Mapped[Optional[int]] = mapped_column(ForeignKey("crm_user.id"), nullable=True)
    probability: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    expected_close_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class Activity(DemoProvenanceMixin, TimestampMixin, Base):
    __tablename__ = "activity"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenant.id"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    contact_id: Mapped[Optional[int]] = mapped_column(ForeignKey("contact.id"), nullable=True)
    deal_id: Mapped[Optional[int]] = mapped_column(ForeignKey("deal.id"), nullable=True)
    owner_id: Mapped[Optional[int]] = mapped_column(ForeignKey("crm_user.id"), nullable=True)
    scheduled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
