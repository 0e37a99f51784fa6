"""Campaign, popup and targeting models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class CampaignStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CampaignTargeting(BaseModel):
    """Who should see a campaign popup.

    With ``show_to_all`` every other field is ignored. Otherwise a visitor is
    eligible when any non-empty rule matches; all-empty targeting matches
    nobody.
    """

    customer_ids: set[int] = Field(default_factory=set)
    lead_ids: set[int] = Field(default_factory=set)
    course_ids: set[int] = Field(default_factory=set)
    workshop_ids: set[int] = Field(default_factory=set)
    allowed_domains: set[str] = Field(default_factory=set)
    show_to_all: bool = False

    @field_validator("allowed_domains", mode="before")
    @classmethod
    def _normalize_domains(cls, value):
        if value is None:
            return set()
        return {normalize_domain(domain) for domain in value if domain and domain.strip()}

    @property
    def is_empty(self) -> bool:
        return not (
            self.customer_ids
            or self.lead_ids
            or self.course_ids
            or self.workshop_ids
            or self.allowed_domains
        )


class Visitor(BaseModel):
    """Identity hints sent by the embedded popup script."""

    customer_id: int | None = None
    lead_id: int | None = None
    domain: str | None = None


class PopupContent(BaseModel):
    """Static popup payload, passed through unchanged."""

    enabled: bool = False
    title: str | None = None
    message: str | None = None
    image_url: str | None = None
    cta_text: str = "לחץ כאן"
    cta_url: str | None = None
    position: str = "center"  # center | bottom-right | bottom-left | top-right | top-left
    delay: int = Field(3000, ge=0, description="Milliseconds before showing")
    background_color: str = "#ffffff"
    text_color: str = "#000000"
    button_color: str = "#007bff"
    button_text_color: str = "#ffffff"


class CampaignRecord(BaseModel):
    id: int
    name: str
    status: CampaignStatus = CampaignStatus.DRAFT
    start_date: datetime
    end_date: datetime | None = None
    embed_token: str | None = None
    popup: PopupContent = Field(default_factory=PopupContent)
    targeting: CampaignTargeting = Field(default_factory=CampaignTargeting)


class PopupEvent(str, Enum):
    IMPRESSION = "impression"
    CLICK = "click"


def normalize_domain(domain: str) -> str:
    """Lowercase and trim a host name for comparison."""
    return domain.strip().lower()
