"""Tests for campaign targeting rules."""

import pytest

from campus_ai.campaigns.models import CampaignTargeting, Visitor
from campus_ai.campaigns.targeting import DEFAULT_RULES, is_eligible


class TestCampaignTargeting:
    def test_domains_normalized(self):
        targeting = CampaignTargeting(allowed_domains=[" Example.COM ", "", "school.org"])
        assert targeting.allowed_domains == {"example.com", "school.org"}

    def test_empty(self):
        assert CampaignTargeting().is_empty
        assert not CampaignTargeting(lead_ids=[1]).is_empty


class TestIsEligible:
    async def test_show_to_all_ignores_other_rules(self, school):
        targeting = CampaignTargeting(show_to_all=True, customer_ids=[99])
        assert await is_eligible(targeting, Visitor(), school)

    async def test_empty_targeting_matches_nobody(self, school):
        visitor = Visitor(customer_id=1, lead_id=2, domain="example.com")
        assert not await is_eligible(CampaignTargeting(), visitor, school)

    @pytest.mark.parametrize("domain", ["example.com", "EXAMPLE.com", "  example.com "])
    async def test_domain_match_case_insensitive(self, school, domain):
        targeting = CampaignTargeting(allowed_domains=["Example.com"])
        assert await is_eligible(targeting, Visitor(domain=domain), school)

    async def test_domain_required_for_domain_rule(self, school):
        targeting = CampaignTargeting(allowed_domains=["example.com"])
        assert not await is_eligible(targeting, Visitor(), school)
        assert not await is_eligible(targeting, Visitor(domain="other.com"), school)

    async def test_customer_and_lead_match(self, school):
        targeting = CampaignTargeting(customer_ids=[5], lead_ids=[8])
        assert await is_eligible(targeting, Visitor(customer_id=5), school)
        assert await is_eligible(targeting, Visitor(lead_id=8), school)
        assert not await is_eligible(targeting, Visitor(customer_id=8, lead_id=5), school)

    async def test_course_enrollment_active_statuses(self, school):
        targeting = CampaignTargeting(course_ids=[10])
        school.course_memberships = [
            (10, 1, None, "approved"),
            (10, 2, None, "cancelled"),
            (10, None, 3, "pending"),
        ]

        assert await is_eligible(targeting, Visitor(customer_id=1), school)
        assert not await is_eligible(targeting, Visitor(customer_id=2), school)
        assert await is_eligible(targeting, Visitor(lead_id=3), school)

    async def test_workshop_enrollment_active_statuses(self, school):
        targeting = CampaignTargeting(workshop_ids=[4])
        school.workshop_enrollments = [
            (4, 1, None, "attended"),
            (4, 2, None, "cancelled"),
        ]

        assert await is_eligible(targeting, Visitor(customer_id=1), school)
        assert not await is_eligible(targeting, Visitor(customer_id=2), school)

    async def test_enrollment_lookup_skipped_without_ids(self, school):
        targeting = CampaignTargeting(customer_ids=[1])

        await is_eligible(targeting, Visitor(customer_id=2), school)

        assert school.course_enrollment_calls == 0
        assert school.workshop_enrollment_calls == 0

    async def test_enrollment_lookup_skipped_for_anonymous_visitor(self, school):
        targeting = CampaignTargeting(course_ids=[10], workshop_ids=[4])

        assert not await is_eligible(targeting, Visitor(domain="x.com"), school)
        assert school.course_enrollment_calls == 0

    async def test_short_circuits_on_first_match(self, school):
        targeting = CampaignTargeting(customer_ids=[1], course_ids=[10], workshop_ids=[4])

        assert await is_eligible(targeting, Visitor(customer_id=1), school)
        assert school.course_enrollment_calls == 0
        assert school.workshop_enrollment_calls == 0

    async def test_custom_rule_set(self, school):
        async def always(targeting, visitor, enrollments):
            return True

        targeting = CampaignTargeting()
        assert await is_eligible(targeting, Visitor(), school, rules=(always,))
        assert not await is_eligible(targeting, Visitor(), school, rules=DEFAULT_RULES)
