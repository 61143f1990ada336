from fastapi import APIRouter
from agileflow.api.v1.endpoints import auth, users, tasks, messages, realtime, health

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
api_router.include_router(messages.router, prefix="/messages", tags=["Messages"])
api_router.include_router(realtime.router, prefix="/realtime", tags=["Realtime"])
