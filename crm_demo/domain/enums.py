"""Enumerations shared by the ORM models, the engine and the API schemas."""
from __future__ import annotations

from enum import Enum


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class GenerationMode(str, Enum):
    GROWTH_CURVE = "growth-curve"
    MONTHLY_PLAN = "monthly-plan"


class GrowthCurve(str, Enum):
    LINEAR = "linear"
    EXPONENTIAL = "exponential"
    LOGISTIC = "logistic"
    STEP = "step"
    # linear slope of ``monthlyRate`` percent per month
    RAMP = "ramp"


class Industry(str, Enum):
    TRADING = "trading"
    IGAMING = "igaming"
    SAAS = "saas"
    ECOMMERCE = "ecommerce"
    REALESTATE = "realestate"
    FINSERV = "finserv"


class StageType(str, Enum):
    OPEN = "open"
    WON = "won"
    LOST = "lost"


class ContactStatus(str, Enum):
    LEAD = "lead"
    PROSPECT = "prospect"
    CUSTOMER = "customer"
    CHURNED = "churned"
    OTHER = "other"


class ActivityType(str, Enum):
    NOTE = "note"
    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    TASK = "task"


class PatchMode(str, Enum):
    ADDITIVE = "additive"
    RECONCILE = "reconcile"
    METRICS_ONLY = "metrics-only"


class PlanType(str, Enum):
    TARGETS = "targets"
    DELTAS = "deltas"


class GenerationPhase(str, Enum):
    """Ordered phases of a generation job."""

    INIT = "init"
    TENANT = "tenant"
    USERS = "users"
    PIPELINE = "pipeline"
    TAGS = "tags"
    COMPANIES = "companies"
    CONTACTS = "contacts"
    DEALS = "deals"
    ACTIVITIES = "activities"
    VERIFY = "verify"
    COMPLETED = "completed"

    @classmethod
    def ordered(cls) -> list["GenerationPhase"]:
        return list(cls)

    def next(self) -> "GenerationPhase":
        phases = self.ordered()
        index = phases.index(self)
        return phases[min(index + 1, len(phases) - 1)]
