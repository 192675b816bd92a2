"""
Plan limit configuration.

This module is the single source of truth for resource types and the limits
that apply when a user has no active plan. It lives in core/ so both service
and API layers can import from it without creating circular dependencies.
"""

UNLIMITED = -1

# Resource types tracked for plan-limit enforcement
QUIZZES = "quizzes"
TEMPLATES = "templates"
SCHEDULED_POSTS = "scheduledPosts"
AI_GENERATION = "aiGeneration"
API_REQUESTS = "apiRequests"
STORAGE = "storage"
TEAM_MEMBERS = "teamMembers"

RESOURCE_TYPES = (
    QUIZZES,
    TEMPLATES,
    SCHEDULED_POSTS,
    AI_GENERATION,
    API_REQUESTS,
    STORAGE,
    TEAM_MEMBERS,
)

# Resources counted live from their own tables rather than from usage records
LIVE_COUNTED_RESOURCES = (QUIZZES, TEMPLATES, SCHEDULED_POSTS)

DEFAULT_LIMITS = {
    QUIZZES: 10,
    TEMPLATES: 3,
    SCHEDULED_POSTS: 10,
    AI_GENERATION: 5,
    API_REQUESTS: 50,
    STORAGE: 50,  # MB
    TEAM_MEMBERS: 1,
}


def merge_limits(base: dict, plan_limits: dict | None) -> dict:
    """
    Combine two limit maps, keeping the most generous value per resource.

    UNLIMITED (-1) always wins. Unknown resource keys in *plan_limits* are ignored.
    """
    merged = dict(base)
    for resource, value in (plan_limits or {}).items():
        if resource not in merged or not isinstance(value, int):
            continue
        current = merged[resource]
        if current == UNLIMITED or value == UNLIMITED:
            merged[resource] = UNLIMITED
        else:
            merged[resource] = max(current, value)
    return merged


def remaining(limit: int, current: int) -> int:
    """Units left before *limit* is reached; UNLIMITED stays UNLIMITED."""
    if limit == UNLIMITED:
        return UNLIMITED
    return max(limit - current, 0)
