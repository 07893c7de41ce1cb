"""Admin API (ADMIN role only)."""
from fastapi import APIRouter
from personnel_admin.api.v1.admin import cascade_delete

admin_router = APIRouter(prefix="/admin", tags=["admin"])
admin_router.include_router(cascade_delete.router, prefix="/employees", tags=["admin-cascade-delete"])
