"""
Main API router
"""
from fastapi import APIRouter

from reportdesk.api.v1 import (
    health,
    version,
    auth,
    reports,
    notifications,
    users,
    departments,
    audit_logs,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(version.router, tags=["version"])
api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(reports.router, prefix="/reports", tags=["reports"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(departments.router, prefix="/departments", tags=["departments"])
api_router.include_router(audit_logs.router, prefix="/audit-logs", tags=["audit"])
