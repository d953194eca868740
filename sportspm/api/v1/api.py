from fastapi import APIRouter
from sportspm.api.v1.endpoints import (
    auth, health, users,
    projects, budget, resources, timeline, comments
)

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, prefix="/users", tags=["users"])

# Resource endpoints
api_router.include_router(projects.router, prefix="/projects", tags=["projects"])
api_router.include_router(budget.router, prefix="/budget", tags=["budget"])
api_router.include_router(resources.router, prefix="/resources", tags=["resources"])
api_router.include_router(timeline.router, prefix="/timeline", tags=["timeline"])
api_router.include_router(comments.router, prefix="/comments", tags=["comments"])
