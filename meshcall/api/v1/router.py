from fastapi import APIRouter

from meshcall.api.v1.endpoints import rooms, signaling

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(signaling.router)
api_router.include_router(rooms.router)
