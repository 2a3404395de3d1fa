"""API v1 routes."""

from fastapi import APIRouter

from wms_tutorial.api.v1 import auth, health, imports, presentations, processes

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(processes.router, prefix="/processes", tags=["processes"])
router.include_router(presentations.router, prefix="/presentations", tags=["presentations"])
router.include_router(imports.router, prefix="/import", tags=["import"])
