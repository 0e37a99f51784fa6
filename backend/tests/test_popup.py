"""Tests for popup resolution and event recording."""

from datetime import timedelta

import pytest

from campus_ai.campaigns.models import (
    CampaignRecord,
    CampaignStatus,
    CampaignTargeting,
    PopupContent,
    PopupEvent,
    Visitor,
)
from campus_ai.campaigns.popup import PopupRejection, PopupResolver
from campus_ai.core.errors import CampaignNotFound


@pytest.fixture
def resolver(campaign_store, school) -> PopupResolver:
    return PopupResolver(campaign_store, school)


@pytest.fixture
def campaign(campaign_store, now) -> CampaignRecord:
    return campaign_store.add(
        CampaignRecord(
            id=1,
            name="הרשמה לסמסטר",
            status=CampaignStatus.ACTIVE,
            start_date=now - timedelta(days=7),
            end_date=now + timedelta(days=7),
            embed_token="tok-123",
            popup=PopupContent(enabled=True, title="הירשמו עכשיו", cta_url="https://x.test"),
            targeting=CampaignTargeting(show_to_all=True),
        )
    )


def _update(campaign_store, campaign, **changes) -> None:
    campaign_store.add(campaign.model_copy(update=changes))


class TestResolve:
    async def test_shows_popup(self, resolver, campaign, now):
        decision = await resolver.resolve("tok-123", Visitor(), now)

        assert decision.show
        assert decision.campaign_id == 1
        assert decision.reason is None
        assert decision.popup.title == "הירשמו עכשיו"

    async def test_unknown_token(self, resolver):
        with pytest.raises(CampaignNotFound):
            await resolver.resolve("missing", Visitor())

    async def test_popup_disabled(self, resolver, campaign_store, campaign, now):
        _update(campaign_store, campaign, popup=PopupContent(enabled=False))

        decision = await resolver.resolve("tok-123", Visitor(), now)

        assert not decision.show
        assert decision.reason == PopupRejection.POPUP_DISABLED
        assert decision.popup is None

    @pytest.mark.parametrize(
        "status",
        [CampaignStatus.DRAFT, CampaignStatus.PAUSED, CampaignStatus.COMPLETED, CampaignStatus.CANCELLED],
    )
    async def test_inactive_status(self, resolver, campaign_store, campaign, now, status):
        _update(campaign_store, campaign, status=status)

        decision = await resolver.resolve("tok-123", Visitor(), now)

        assert decision.reason == PopupRejection.CAMPAIGN_INACTIVE

    async def test_not_started(self, resolver, campaign_store, campaign, now):
        _update(campaign_store, campaign, start_date=now + timedelta(hours=1))

        decision = await resolver.resolve("tok-123", Visitor(), now)

        assert decision.reason == PopupRejection.NOT_STARTED

    async def test_ended(self, resolver, campaign_store, campaign, now):
        _update(campaign_store, campaign, end_date=now - timedelta(seconds=1))

        decision = await resolver.resolve("tok-123", Visitor(), now)

        assert decision.reason == PopupRejection.ENDED

    async def test_open_ended_campaign(self, resolver, campaign_store, campaign, now):
        _update(campaign_store, campaign, end_date=None)

        decision = await resolver.resolve("tok-123", Visitor(), now + timedelta(days=365))

        assert decision.show

    async def test_gates_checked_before_targeting(self, resolver, campaign_store, campaign, school, now):
        _update(
            campaign_store,
            campaign,
            status=CampaignStatus.PAUSED,
            targeting=CampaignTargeting(course_ids=[10]),
        )

        decision = await resolver.resolve("tok-123", Visitor(customer_id=1), now)

        assert decision.reason == PopupRejection.CAMPAIGN_INACTIVE
        assert school.course_enrollment_calls == 0

    async def test_not_targeted(self, resolver, campaign_store, campaign, now):
        _update(campaign_store, campaign, targeting=CampaignTargeting(customer_ids=[5]))

        hidden = await resolver.resolve("tok-123", Visitor(customer_id=6), now)
        shown = await resolver.resolve("tok-123", Visitor(customer_id=5), now)

        assert hidden.reason == PopupRejection.NOT_TARGETED
        assert shown.show


class TestEvents:
    async def test_record_impression_and_click(self, resolver, campaign, campaign_store, now):
        await resolver.record_impression("tok-123", now)
        await resolver.record_click("tok-123", now)

        assert campaign_store.events == [
            (1, PopupEvent.IMPRESSION, now.date()),
            (1, PopupEvent.CLICK, now.date()),
        ]

    async def test_unknown_token(self, resolver):
        with pytest.raises(CampaignNotFound):
            await resolver.record_click("missing")
