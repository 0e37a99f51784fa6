"""Public endpoints used by the embeddable campaign popup script."""

from fastapi import APIRouter, Depends, Query

from campus_ai.api.deps import get_popup_resolver
from campus_ai.campaigns.models import Visitor
from campus_ai.campaigns.popup import PopupDecision, PopupResolver

router = APIRouter()


def _visitor(
    customer_id: int | None = Query(None),
    lead_id: int | None = Query(None),
    domain: str | None = Query(None),
) -> Visitor:
    return Visitor(customer_id=customer_id, lead_id=lead_id, domain=domain)


@router.get("/{token}", response_model=PopupDecision)
async def get_popup(
    token: str,
    visitor: Visitor = Depends(_visitor),
    resolver: PopupResolver = Depends(get_popup_resolver),
) -> PopupDecision:
    """Decide whether to show the campaign popup to this visitor."""
    return await resolver.resolve(token, visitor)


@router.post("/{token}/impression")
async def record_impression(
    token: str,
    resolver: PopupResolver = Depends(get_popup_resolver),
) -> dict[str, bool]:
    await resolver.record_impression(token)
    return {"success": True}


@router.post("/{token}/click")
async def record_click(
    token: str,
    resolver: PopupResolver = Depends(get_popup_resolver),
) -> dict[str, bool]:
    await resolver.record_click(token)
    return {"success": True}
