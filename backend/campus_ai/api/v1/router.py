"""API v1 router aggregating all endpoint routers.

Tutor bot (students, identified by X-Student-ID):
  /api/v1/ai-bot/messages, /history, /exam-question, /exam-answer, /study-plan

Knowledge base:
  /api/v1/knowledge/search, /import/{course_id}

Campaign popups (public, embed token):
  /api/v1/popup/{token}, /{token}/impression, /{token}/click
"""

from fastapi import APIRouter

from campus_ai.api.v1.endpoints import ai_bot, knowledge, popup

api_router = APIRouter()

# -------------------------------------------------------------------------
# Tutor bot
# -------------------------------------------------------------------------
api_router.include_router(ai_bot.router, prefix="/ai-bot", tags=["ai-bot"])

# -------------------------------------------------------------------------
# Knowledge base
# -------------------------------------------------------------------------
api_router.include_router(knowledge.router, prefix="/knowledge", tags=["knowledge"])

# -------------------------------------------------------------------------
# Campaign popups
# -------------------------------------------------------------------------
api_router.include_router(popup.router, prefix="/popup", tags=["popup"])
