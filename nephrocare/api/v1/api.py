from fastapi import APIRouter

from .endpoints import alerts, notifications, patients, system

api_router = APIRouter()

# No prefixes: the routers carry their own top-level paths.
api_router.include_router(notifications.router, tags=["Notifications"])
api_router.include_router(alerts.router, tags=["Alerts"])
api_router.include_router(patients.router, tags=["Patients"])
api_router.include_router(system.router, tags=["System Infrastructure"])
