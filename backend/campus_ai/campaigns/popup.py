"""Popup resolution for the embeddable campaign script."""

import logging
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel

from campus_ai.campaigns.models import (
    CampaignRecord,
    CampaignStatus,
    PopupContent,
    PopupEvent,
    Visitor,
)
from campus_ai.campaigns.targeting import is_eligible
from campus_ai.core.errors import CampaignNotFound
from campus_ai.stores.base import CampaignStore, EnrollmentStore

logger = logging.getLogger(__name__)


class PopupRejection(str, Enum):
    POPUP_DISABLED = "popup_disabled"
    CAMPAIGN_INACTIVE = "campaign_inactive"
    NOT_STARTED = "not_started"
    ENDED = "ended"
    NOT_TARGETED = "not_targeted"


class PopupDecision(BaseModel):
    show: bool
    campaign_id: int
    reason: PopupRejection | None = None
    popup: PopupContent | None = None

    @classmethod
    def hidden(cls, campaign_id: int, reason: PopupRejection) -> "PopupDecision":
        return cls(show=False, campaign_id=campaign_id, reason=reason)


class PopupResolver:
    """Decides whether a campaign popup is shown to a visitor."""

    def __init__(self, campaigns: CampaignStore, enrollments: EnrollmentStore) -> None:
        self.campaigns = campaigns
        self.enrollments = enrollments

    async def _get_campaign(self, embed_token: str) -> CampaignRecord:
        campaign = await self.campaigns.get_by_embed_token(embed_token)
        if campaign is None:
            raise CampaignNotFound(embed_token)
        return campaign

    async def resolve(
        self,
        embed_token: str,
        visitor: Visitor,
        now: datetime | None = None,
    ) -> PopupDecision:
        """Apply the campaign gates, then targeting.

        Raises:
            CampaignNotFound: No campaign uses this embed token.
        """
        campaign = await self._get_campaign(embed_token)
        now = now or datetime.now(timezone.utc)

        reason = None
        if not campaign.popup.enabled:
            reason = PopupRejection.POPUP_DISABLED
        elif campaign.status != CampaignStatus.ACTIVE:
            reason = PopupRejection.CAMPAIGN_INACTIVE
        elif campaign.start_date > now:
            reason = PopupRejection.NOT_STARTED
        elif campaign.end_date is not None and campaign.end_date < now:
            reason = PopupRejection.ENDED
        elif not await is_eligible(campaign.targeting, visitor, self.enrollments):
            reason = PopupRejection.NOT_TARGETED

        if reason is not None:
            logger.debug("Popup hidden for campaign %s: %s", campaign.id, reason.value)
            return PopupDecision.hidden(campaign.id, reason)

        return PopupDecision(show=True, campaign_id=campaign.id, popup=campaign.popup)

    async def _record(self, embed_token: str, kind: PopupEvent, now: datetime | None) -> None:
        campaign = await self._get_campaign(embed_token)
        day = (now or datetime.now(timezone.utc)).date()
        await self.campaigns.record_event(campaign.id, kind, day)

    async def record_impression(self, embed_token: str, now: datetime | None = None) -> None:
        """Count a popup display in today's campaign performance.

        Raises:
            CampaignNotFound: No campaign uses this embed token.
        """
        await self._record(embed_token, PopupEvent.IMPRESSION, now)

    async def record_click(self, embed_token: str, now: datetime | None = None) -> None:
        """Count a popup CTA click in today's campaign performance.

        Raises:
            CampaignNotFound: No campaign uses this embed token.
        """
        await self._record(embed_token, PopupEvent.CLICK, now)
