from typing import Optional, Dict, List, FrozenSet, Tuple
from pydantic import BaseModel, Field, field_validator
from uuid import UUID
from datetime import datetime
from decimal import Decimal
from enum import Enum
from .common import Actor, ProfileSummary, ProjectCategory, ProjectStatus


# ---------------------------------------------------------------------------
# Lifecycle transitions
# ---------------------------------------------------------------------------

_ADMIN = frozenset({Actor.ADMIN})
_CUSTOMER = frozenset({Actor.CUSTOMER})

# (from, to) -> actors allowed to take the edge
PROJECT_TRANSITIONS: Dict[Tuple[ProjectStatus, ProjectStatus], FrozenSet[Actor]] = {
    (ProjectStatus.PENDING, ProjectStatus.IN_PROGRESS): _ADMIN,
    (ProjectStatus.PENDING, ProjectStatus.CUSTOMER_REVIEW): _ADMIN,
    (ProjectStatus.IN_PROGRESS, ProjectStatus.PENDING): _ADMIN,
    (ProjectStatus.IN_PROGRESS, ProjectStatus.CUSTOMER_REVIEW): _ADMIN,
    (ProjectStatus.CUSTOMER_REVIEW, ProjectStatus.ACCEPTED): _CUSTOMER,
    (ProjectStatus.CUSTOMER_REVIEW, ProjectStatus.REWORK_REQUESTED): _CUSTOMER,
    (ProjectStatus.CUSTOMER_REVIEW, ProjectStatus.PAID): _ADMIN,
    (ProjectStatus.REWORK_REQUESTED, ProjectStatus.IN_PROGRESS): _ADMIN,
    (ProjectStatus.REWORK_REQUESTED, ProjectStatus.CUSTOMER_REVIEW): _ADMIN,
    (ProjectStatus.ACCEPTED, ProjectStatus.PAID): _ADMIN,
    (ProjectStatus.ACCEPTED, ProjectStatus.COMPLETED): _ADMIN,
    (ProjectStatus.PAID, ProjectStatus.COMPLETED): _ADMIN,
}

# Payment verification settles a project from wherever it is
for _status in ProjectStatus:
    if _status is not ProjectStatus.COMPLETED:
        _edge = (_status, ProjectStatus.COMPLETED)
        PROJECT_TRANSITIONS[_edge] = PROJECT_TRANSITIONS.get(_edge, frozenset()) | {Actor.SYSTEM}


def allowed_transitions(current: ProjectStatus, actor: Actor) -> List[ProjectStatus]:
    """Statuses `actor` may move a project to from `current`, in enum order."""
    return [
        target
        for target in ProjectStatus
        if actor in PROJECT_TRANSITIONS.get((current, target), frozenset())
    ]


def validate_transition(
    current: ProjectStatus, target: ProjectStatus, actor: Actor
) -> tuple[bool, str]:
    """Validate a project status transition for an actor.

    Returns (is_valid, error_message).
    """
    if current == target:
        return False, f"Project is already in {current.value} status"

    actors = PROJECT_TRANSITIONS.get((current, target))
    if not actors:
        return False, f"Cannot transition from {current.value} to {target.value}"

    if actor not in actors:
        allowed = [s.value for s in allowed_transitions(current, actor)]
        return False, (
            f"A {actor.value} cannot move a project from {current.value} to "
            f"{target.value}. Allowed: {allowed}"
        )

    return True, ""


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ProjectSpecFields(BaseModel):
    spec_style_number: Optional[str] = None
    spec_colors: Optional[str] = None
    spec_sizes: Optional[str] = None
    spec_apparel_type: Optional[str] = None
    spec_gender: Optional[str] = None
    spec_age_group: Optional[str] = None
    wants_new_style: bool = False
    wants_tag_creation: bool = False
    wants_color_variations: bool = False
    wants_style_variations: bool = False
    wants_marketing_poster: bool = False


class ProjectCreate(ProjectSpecFields):
    category: ProjectCategory
    project_name: Optional[str] = None
    description: str
    attachments: List[str] = Field(default_factory=list)

    @field_validator("description")
    @classmethod
    def _description_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("description must not be blank")
        return v


class ProjectUpdate(BaseModel):
    project_name: Optional[str] = None
    description: Optional[str] = None
    spec_style_number: Optional[str] = None
    spec_colors: Optional[str] = None
    spec_sizes: Optional[str] = None
    spec_apparel_type: Optional[str] = None
    spec_gender: Optional[str] = None
    spec_age_group: Optional[str] = None
    wants_new_style: Optional[bool] = None
    wants_tag_creation: Optional[bool] = None
    wants_color_variations: Optional[bool] = None
    wants_style_variations: Optional[bool] = None
    wants_marketing_poster: Optional[bool] = None


class AdminResponse(BaseModel):
    """Admin delivers a solution and a bill. New attachments are appended."""
    admin_response: str
    bill_amount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    admin_attachments: List[str] = Field(default_factory=list)


class ReviewDecision(str, Enum):
    ACCEPT = "accept"
    REWORK = "rework"


class CustomerReview(BaseModel):
    decision: ReviewDecision
    feedback: Optional[str] = None


class ProjectTransition(BaseModel):
    to_status: ProjectStatus


class ProjectScope(str, Enum):
    ACTIVE = "active"
    ARCHIVE = "archive"
    ALL = "all"


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ProjectRead(ProjectSpecFields):
    id: UUID
    project_number: int
    customer_id: UUID
    category: ProjectCategory
    status: ProjectStatus
    project_name: Optional[str] = None
    description: str
    admin_response: Optional[str] = None
    admin_response_stale: bool = False
    rework_feedback: Optional[str] = None
    bill_amount: Decimal
    attachments: List[str] = Field(default_factory=list)
    admin_attachments: List[str] = Field(default_factory=list)
    attachment_urls: List[str] = Field(default_factory=list)
    admin_attachment_urls: List[str] = Field(default_factory=list)
    allowed_transitions: List[ProjectStatus] = Field(default_factory=list)
    customer: Optional[ProfileSummary] = None
    created_at: datetime
    updated_at: datetime


class ProjectStats(BaseModel):
    total: int = 0
    action_pipeline: int = 0
    awaiting_review: int = 0
    completed: int = 0
    customers: int = 0
