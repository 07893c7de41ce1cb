"""
Main API router
"""
from fastapi import APIRouter

from personnel_admin.api.v1 import (
    health,
    employees,
    version,
)
from personnel_admin.api.v1.admin import admin_router

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(version.router, tags=["version"])
api_router.include_router(employees.router, prefix="/employees", tags=["employees"])
api_router.include_router(admin_router)
