from fastapi import APIRouter

from app.api.v1 import (
    auth,
    automation,
    collections,
    companies,
    dashboard,
    documents,
    employees,
    health_checkups,
    messages,
    super_admin,
    tasks,
)

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(companies.router, prefix="/companies", tags=["companies"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
api_router.include_router(employees.router, prefix="/employees", tags=["employees"])
api_router.include_router(tasks.router, prefix="/tasks", tags=["tasks"])
api_router.include_router(health_checkups.router, prefix="/health-checkups", tags=["health-checkups"])
api_router.include_router(documents.router, prefix="/documents", tags=["documents"])
api_router.include_router(messages.router, prefix="/messages", tags=["messages"])
api_router.include_router(automation.router, prefix="/automation", tags=["automation"])
api_router.include_router(collections.router, prefix="/collections", tags=["collections"])
api_router.include_router(super_admin.router, prefix="/super-admin", tags=["super-admin"])
