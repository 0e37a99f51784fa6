"""Campaign popup targeting.

Eligibility is an OR over independent rule predicates, evaluated in order and
stopping at the first match. Each rule ignores an empty targeting list, so a
targeting object with every list empty (and ``show_to_all`` off) matches
nobody.
"""

import logging
from typing import Awaitable, Callable

from campus_ai.campaigns.models import CampaignTargeting, Visitor, normalize_domain
from campus_ai.stores.base import EnrollmentStore

logger = logging.getLogger(__name__)

ACTIVE_COURSE_ENROLLMENT_STATUSES = frozenset({"pending", "approved", "enrolled"})
ACTIVE_WORKSHOP_ENROLLMENT_STATUSES = frozenset({"enrolled", "attended"})

TargetingRule = Callable[[CampaignTargeting, Visitor, EnrollmentStore], Awaitable[bool]]


async def matches_domain(
    targeting: CampaignTargeting,
    visitor: Visitor,
    enrollments: EnrollmentStore,
) -> bool:
    if not targeting.allowed_domains or not visitor.domain:
        return False
    return normalize_domain(visitor.domain) in targeting.allowed_domains


async def matches_customer(
    targeting: CampaignTargeting,
    visitor: Visitor,
    enrollments: EnrollmentStore,
) -> bool:
    return visitor.customer_id is not None and visitor.customer_id in targeting.customer_ids


async def matches_lead(
    targeting: CampaignTargeting,
    visitor: Visitor,
    enrollments: EnrollmentStore,
) -> bool:
    return visitor.lead_id is not None and visitor.lead_id in targeting.lead_ids


async def matches_course_enrollment(
    targeting: CampaignTargeting,
    visitor: Visitor,
    enrollments: EnrollmentStore,
) -> bool:
    if not targeting.course_ids or (visitor.customer_id is None and visitor.lead_id is None):
        return False
    return await enrollments.course_enrollment_exists(
        targeting.course_ids,
        ACTIVE_COURSE_ENROLLMENT_STATUSES,
        customer_id=visitor.customer_id,
        lead_id=visitor.lead_id,
    )


async def matches_workshop_enrollment(
    targeting: CampaignTargeting,
    visitor: Visitor,
    enrollments: EnrollmentStore,
) -> bool:
    if not targeting.workshop_ids or (visitor.customer_id is None and visitor.lead_id is None):
        return False
    return await enrollments.workshop_enrollment_exists(
        targeting.workshop_ids,
        ACTIVE_WORKSHOP_ENROLLMENT_STATUSES,
        customer_id=visitor.customer_id,
        lead_id=visitor.lead_id,
    )


# Cheap in-memory checks first, store lookups last
DEFAULT_RULES: tuple[TargetingRule, ...] = (
    matches_domain,
    matches_customer,
    matches_lead,
    matches_course_enrollment,
    matches_workshop_enrollment,
)


async def is_eligible(
    targeting: CampaignTargeting,
    visitor: Visitor,
    enrollments: EnrollmentStore,
    rules: tuple[TargetingRule, ...] = DEFAULT_RULES,
) -> bool:
    """Whether a visitor should see the popup."""
    if targeting.show_to_all:
        return True

    for rule in rules:
        if await rule(targeting, visitor, enrollments):
            logger.debug("Visitor %s matched targeting rule %s", visitor, rule.__name__)
            return True
    return False
