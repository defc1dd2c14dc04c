"""API router package."""

from fastapi import APIRouter

from designhub.api.v1 import (
    activities,
    auth,
    calendar,
    daily_reports,
    dashboard,
    files,
    health,
    incidents,
    messages,
    milestones,
    notifications,
    projects,
    risks,
    schedule,
    tasks,
    users,
    websocket,
)

router = APIRouter()

# Include all API routers
router.include_router(health.router, tags=["Health"])
router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(projects.router, prefix="/projects", tags=["Projects"])
router.include_router(milestones.router, tags=["Milestones"])
router.include_router(schedule.router, tags=["Schedule"])
router.include_router(activities.router, prefix="/activities", tags=["Activities"])
router.include_router(risks.router, tags=["Risks"])
router.include_router(daily_reports.router, tags=["Daily Reports"])
router.include_router(incidents.router, tags=["Incidents"])
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
router.include_router(messages.router, prefix="/messages", tags=["Messages"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
router.include_router(calendar.router, prefix="/calendar", tags=["Calendar"])
router.include_router(files.router, prefix="/files", tags=["Files"])
router.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
router.include_router(websocket.router, tags=["WebSocket"])
