"""API Routes."""

from fastapi import APIRouter

from .admin_analytics import router as admin_analytics_router
from .admin_organizations import router as admin_organizations_router
from .admin_plans import router as admin_plans_router
from .ai import router as ai_router
from .auth import router as auth_router
from .auto_schedule_slots import router as auto_schedule_slots_router
from .collections import router as collections_router
from .content_usage import router as content_usage_router
from .cron import router as cron_router
from .dictionary import router as dictionary_router
from .health import router as health_router
from .invitations import router as invitations_router
from .organizations import router as organizations_router
from .quiz_generation import router as quiz_generation_router
from .quizzes import router as quizzes_router
from .scheduled_posts import router as scheduled_posts_router
from .settings_facebook import router as settings_facebook_router
from .slots import router as slots_router
from .templates import router as templates_router
from .usage import router as usage_router

# Create main API router
api_router = APIRouter()

# Include route modules
api_router.include_router(health_router, tags=["Health"])
api_router.include_router(auth_router)
api_router.include_router(templates_router)
api_router.include_router(quizzes_router)
api_router.include_router(quiz_generation_router)
api_router.include_router(ai_router)
api_router.include_router(scheduled_posts_router)
api_router.include_router(auto_schedule_slots_router)
api_router.include_router(slots_router)
api_router.include_router(cron_router)
api_router.include_router(settings_facebook_router)
api_router.include_router(usage_router)
api_router.include_router(dictionary_router)
api_router.include_router(content_usage_router)
api_router.include_router(collections_router)
api_router.include_router(organizations_router)
api_router.include_router(invitations_router)
api_router.include_router(admin_plans_router)
api_router.include_router(admin_organizations_router)
api_router.include_router(admin_analytics_router)
