"""Marketing campaign and popup performance models."""

from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from campus_ai.models.base import BaseModel


class Campaign(BaseModel):
    """Marketing campaign with an optional embeddable popup."""

    __tablename__ = "campaigns"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # draft | active | paused | completed | cancelled
    status: Mapped[str] = mapped_column(String(20), default="draft", index=True)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    embed_token: Mapped[Optional[str]] = mapped_column(String(64), unique=True, nullable=True)

    # Popup settings: enabled, title, message, image_url, cta_text, cta_url,
    # position, delay, background_color, text_color, button_color, button_text_color
    popup: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    # Targeting: customer_ids, lead_ids, course_ids, workshop_ids,
    # allowed_domains, show_to_all
    targeting: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    def __repr__(self) -> str:
        return f"<Campaign(id={self.id}, name={self.name}, status={self.status})>"


class CampaignPerformance(BaseModel):
    """Daily popup impression and click counters for a campaign."""

    __tablename__ = "campaign_performance"
    __table_args__ = (UniqueConstraint("campaign_id", "day", name="uq_campaign_performance_day"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    campaign_id: Mapped[int] = mapped_column(
        ForeignKey("campaigns.id", ondelete="CASCADE"),
        index=True,
    )
    day: Mapped[date] = mapped_column(Date)
    impressions: Mapped[int] = mapped_column(Integer, default=0)
    clicks: Mapped[int] = mapped_column(Integer, default=0)

    def __repr__(self) -> str:
        return f"<CampaignPerformance(campaign_id={self.campaign_id}, day={self.day})>"
