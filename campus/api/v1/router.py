from fastapi import APIRouter

from .endpoints import health, quizzes, courses, workflows

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(quizzes.router, prefix="/quizzes", tags=["quizzes"])
api_router.include_router(courses.router, prefix="/courses", tags=["courses"])

# Trigger events, execution status and the dispatcher cron hook
api_router.include_router(workflows.router, prefix="/workflows", tags=["workflows"])
