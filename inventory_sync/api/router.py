from fastapi import APIRouter

from inventory_sync.api.routes import sync

api_router = APIRouter()

api_router.include_router(sync.router, prefix="/sync", tags=["Sync"])
