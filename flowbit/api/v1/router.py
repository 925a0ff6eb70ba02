"""
API v1 Router
"""

from fastapi import APIRouter

from flowbit.api.v1.endpoints import messages, runs, schedules, trigger

api_router = APIRouter()

api_router.include_router(trigger.router, tags=["Trigger"])
api_router.include_router(runs.router, tags=["Executions"])
api_router.include_router(messages.router, tags=["Messages"])
api_router.include_router(schedules.router, tags=["Schedules"])
