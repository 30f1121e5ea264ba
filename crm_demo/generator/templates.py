"""Industry templates: pipeline stages, deal value bands and activity rates."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from crm_demo.domain.enums import ActivityType, Industry, StageType


@dataclass(frozen=True, slots=True)
class StageTemplate:
    name: str
    type: StageType
    probability: int
    avg_days_in_stage: int
    color: str


@dataclass(frozen=True, slots=True)
class DealProfile:
    min_value: Decimal
    max_value: Decimal
    avg_value: Decimal
    cycle_days_min: int
    cycle_days_max: int
    win_rate: float


@dataclass(frozen=True, slots=True)
class LeadProfile:
    conversion_rate: float
    qualification_rate: float


@dataclass(frozen=True, slots=True)
class ActivityProfile:
    avg_per_contact: int
    avg_per_deal: int
    call_to_email_ratio: float


@dataclass(frozen=True, slots=True)
class IndustryTemplate:
    id: Industry
    name: str
    pipeline_name: str
    stages: tuple[StageTemplate, ...]
    deals: DealProfile
    leads: LeadProfile
    activities: ActivityProfile
    company_patterns: tuple[str, ...]

    def stages_of(self, stage_type: StageType) -> list[StageTemplate]:
        return [stage for stage in self.stages if stage.type is stage_type]


def _stage(name: str, kind: str, probability: int, days: int, color: str) -> StageTemplate:
    return StageTemplate(name, StageType(kind), probability, days, color)


def _deals(minimum: int, maximum: int, average: int, cycle: tuple[int, int], win_rate: float) -> DealProfile:
    return DealProfile(
        Decimal(minimum), Decimal(maximum), Decimal(average), cycle[0], cycle[1], win_rate
    )


TEMPLATES: dict[Industry, IndustryTemplate] = {
    Industry.TRADING: IndustryTemplate(
        id=Industry.TRADING,
        name="Trading / Forex / CFD",
        pipeline_name="Trading Pipeline",
        stages=(
            _stage("New Lead", "open", 10, 2, "#6366f1"),
            _stage("Contacted", "open", 20, 3, "#8b5cf6"),
            _stage("Qualified", "open", 35, 5, "#a855f7"),
            _stage("Demo Scheduled", "open", 50, 4, "#d946ef"),
            _stage("Demo Completed", "open", 65, 7, "#ec4899"),
            _stage("Funded", "open", 80, 14, "#f43f5e"),
            _stage("Active Trader", "won", 100, 0, "#22c55e"),
            _stage("VIP", "won", 100, 0, "#fbbf24"),
            _stage("Churned", "lost", 0, 0, "#ef4444"),
            _stage("Disqualified", "lost", 0, 0, "#9ca3af"),
        ),
        deals=_deals(500, 100000, 5000, (7, 45), 0.25),
        leads=LeadProfile(0.40, 0.30),
        activities=ActivityProfile(8, 12, 0.6),
        company_patterns=(
            "{Word} Trading",
            "{Word} Capital",
            "{Name} Investments",
            "{Word} Markets",
            "{Word} Financial",
            "{Name} Trading Group",
            "{Word} FX",
            "{Word} Global Markets",
        ),
    ),
    Industry.IGAMING: IndustryTemplate(
        id=Industry.IGAMING,
        name="iGaming / Online Casino",
        pipeline_name="Player Pipeline",
        stages=(
            _stage("Registration", "open", 15, 1, "#6366f1"),
            _stage("KYC Pending", "open", 30, 2, "#8b5cf6"),
            _stage("KYC Verified", "open", 50, 3, "#a855f7"),
            _stage("First Deposit", "open", 70, 5, "#d946ef"),
            _stage("Active Player", "won", 100, 0, "#22c55e"),
            _stage("VIP", "won", 100, 0, "#fbbf24"),
            _stage("High Roller", "won", 100, 0, "#f59e0b"),
            _stage("Dormant", "lost", 0, 0, "#9ca3af"),
            _stage("Self-Excluded", "lost", 0, 0, "#ef4444"),
        ),
        deals=_deals(50, 50000, 500, (1, 30), 0.35),
        leads=LeadProfile(0.60, 0.25),
        activities=ActivityProfile(5, 8, 0.3),
        company_patterns=(
            "{Word} Casino",
            "{Word} Gaming",
            "{Word} Bet",
            "{Word} Play",
            "{Word} Slots",
            "{Word} Poker",
            "{Word} Sports",
            "{Word} Games",
        ),
    ),
    Industry.SAAS: IndustryTemplate(
        id=Industry.SAAS,
        name="SaaS / Software",
        pipeline_name="SaaS Sales Pipeline",
        stages=(
            _stage("Lead", "open", 10, 3, "#6366f1"),
            _stage("Discovery", "open", 20, 7, "#8b5cf6"),
            _stage("Demo", "open", 35, 7, "#a855f7"),
            _stage("Trial", "open", 50, 14, "#d946ef"),
            _stage("Proposal", "open", 65, 10, "#ec4899"),
            _stage("Negotiation", "open", 80, 14, "#f43f5e"),
            _stage("Closed Won", "won", 100, 0, "#22c55e"),
            _stage("Closed Lost", "lost", 0, 0, "#ef4444"),
            _stage("No Decision", "lost", 0, 0, "#9ca3af"),
        ),
        deals=_deals(500, 100000, 12000, (30, 120), 0.22),
        leads=LeadProfile(0.30, 0.35),
        activities=ActivityProfile(10, 15, 0.5),
        company_patterns=(
            "{Word} Software",
            "{Word} Tech",
            "{Word} Systems",
            "{Word} Solutions",
            "{Word} Cloud",
            "{Word} Labs",
            "{Word} IO",
            "{Word} HQ",
            "{Word} App",
        ),
    ),
    Industry.ECOMMERCE: IndustryTemplate(
        id=Industry.ECOMMERCE,
        name="E-commerce / Retail",
        pipeline_name="E-commerce Pipeline",
        stages=(
            _stage("Visitor", "open", 5, 1, "#6366f1"),
            _stage("Cart Added", "open", 20, 1, "#8b5cf6"),
            _stage("Checkout Started", "open", 40, 1, "#a855f7"),
            _stage("Payment Pending", "open", 70, 1, "#d946ef"),
            _stage("Purchased", "won", 100, 0, "#22c55e"),
            _stage("Repeat Customer", "won", 100, 0, "#fbbf24"),
            _stage("VIP Customer", "won", 100, 0, "#f59e0b"),
            _stage("Abandoned", "lost", 0, 0, "#ef4444"),
            _stage("Refunded", "lost", 0, 0, "#f97316"),
        ),
        deals=_deals(20, 2000, 150, (1, 7), 0.45),
        leads=LeadProfile(0.70, 0.20),
        activities=ActivityProfile(3, 4, 0.2),
        company_patterns=(
            "{Word} Store",
            "{Word} Shop",
            "{Word} Market",
            "{Word} Goods",
            "{Word} Direct",
            "{Word} Outlet",
            "{Word} Express",
            "{Word} Mart",
        ),
    ),
    Industry.REALESTATE: IndustryTemplate(
        id=Industry.REALESTATE,
        name="Real Estate",
        pipeline_name="Real Estate Pipeline",
        stages=(
            _stage("Inquiry", "open", 10, 1, "#6366f1"),
            _stage("Viewing Scheduled", "open", 25, 5, "#8b5cf6"),
            _stage("Viewing Done", "open", 40, 7, "#a855f7"),
            _stage("Offer Made", "open", 60, 14, "#d946ef"),
            _stage("Negotiation", "open", 75, 21, "#ec4899"),
            _stage("Contract Signed", "open", 90, 30, "#f43f5e"),
            _stage("Closed", "won", 100, 0, "#22c55e"),
            _stage("Lost", "lost", 0, 0, "#ef4444"),
        ),
        deals=_deals(50000, 2000000, 350000, (60, 180), 0.15),
        leads=LeadProfile(0.25, 0.40),
        activities=ActivityProfile(6, 15, 0.7),
        company_patterns=(
            "{Word} Realty",
            "{Word} Properties",
            "{Name} Real Estate",
            "{Word} Homes",
            "{Word} Land {Suffix}",
        ),
    ),
    Industry.FINSERV: IndustryTemplate(
        id=Industry.FINSERV,
        name="Financial Services",
        pipeline_name="Financial Services Pipeline",
        stages=(
            _stage("Lead", "open", 10, 2, "#6366f1"),
            _stage("Consultation", "open", 25, 7, "#8b5cf6"),
            _stage("Application", "open", 50, 14, "#a855f7"),
            _stage("Underwriting", "open", 70, 21, "#d946ef"),
            _stage("Approval", "open", 85, 7, "#ec4899"),
            _stage("Funded", "won", 100, 0, "#22c55e"),
            _stage("Declined", "lost", 0, 0, "#ef4444"),
            _stage("Withdrawn", "lost", 0, 0, "#f97316"),
        ),
        deals=_deals(5000, 500000, 50000, (30, 90), 0.35),
        leads=LeadProfile(0.35, 0.45),
        activities=ActivityProfile(8, 12, 0.6),
        company_patterns=(
            "{Word} Financial",
            "{Word} Capital",
            "{Name} Advisors",
            "{Word} Wealth",
            "{Word} Investment {Suffix}",
        ),
    ),
}


def get_template(industry: Industry | str) -> IndustryTemplate:
    try:
        key = Industry(industry)
    except ValueError as exc:
        raise ValueError(f"Unknown industry template: {industry}") from exc
    return TEMPLATES[key]


TAG_DEFINITIONS: tuple[tuple[str, str], ...] = (
    ("VIP", "#fbbf24"),
    ("Enterprise", "#3b82f6"),
    ("SMB", "#10b981"),
    ("Partner", "#8b5cf6"),
    ("Referral", "#f97316"),
    ("Inbound", "#06b6d4"),
    ("Hot Lead", "#ef4444"),
    ("Cold", "#6b7280"),
)

COMPANY_SIZES = ("1-10", "11-50", "51-200", "201-500", "500+")
COMPANY_SIZE_WEIGHTS = (30, 30, 20, 12, 8)

DEAL_TYPES = ("New Business", "Upsell", "Renewal", "Expansion")

ACTIVITY_SUBJECTS: dict[ActivityType, tuple[str, ...]] = {
    ActivityType.CALL: ("Discovery call", "Follow-up call", "Demo call", "Check-in call", "Onboarding call"),
    ActivityType.EMAIL: ("Introduction email", "Proposal sent", "Follow-up email", "Thank you email", "Contract details"),
    ActivityType.MEETING: ("Initial meeting", "Product demo", "Negotiation meeting", "Contract review", "Quarterly review"),
    ActivityType.NOTE: ("Meeting notes", "Call summary", "Client feedback", "Internal notes", "Action items"),
    ActivityType.TASK: ("Send proposal", "Schedule demo", "Prepare contract", "Update CRM", "Follow up"),
}

ACTIVITY_DESCRIPTIONS: dict[ActivityType, tuple[str, ...]] = {
    ActivityType.CALL: (
        "Discussed current needs and timeline.",
        "Walked through pricing options.",
        "Left a voicemail, will try again later this week.",
        "Answered open questions about onboarding.",
    ),
    ActivityType.EMAIL: (
        "Sent overview deck and case studies.",
        "Shared proposal with updated terms.",
        "Followed up on last conversation.",
        "Confirmed next steps in writing.",
    ),
    ActivityType.MEETING: (
        "Met with decision makers to review requirements.",
        "Presented the product to the wider team.",
        "Reviewed contract terms and open items.",
        "Quarterly business review with stakeholders.",
    ),
    ActivityType.NOTE: (
        "Budget approved for next quarter.",
        "Competitor evaluation in progress.",
        "Champion moving to a new role.",
        "Procurement requires two more weeks.",
    ),
    ActivityType.TASK: (
        "Prepare follow-up materials.",
        "Schedule technical deep dive.",
        "Draft renewal quote.",
        "Update opportunity notes.",
    ),
}

ACTIVITY_TYPES: tuple[ActivityType, ...] = (
    ActivityType.NOTE,
    ActivityType.CALL,
    ActivityType.EMAIL,
    ActivityType.MEETING,
    ActivityType.TASK,
)


def activity_type_weights(call_to_email_ratio: float) -> tuple[float, ...]:
    """Weights aligned with :data:`ACTIVITY_TYPES`."""

    return (15, call_to_email_ratio * 30, (1 - call_to_email_ratio) * 30, 15, 10)
