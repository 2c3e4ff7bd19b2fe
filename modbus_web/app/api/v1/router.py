from fastapi import APIRouter

from modbus_web.app.config import settings

from modbus_web.app.schemas.common import RootResponse
from modbus_web.app.api.v1.connection import router as connection_router
from modbus_web.app.api.v1.system import router as system_router

# Create main API router
api_router = APIRouter(prefix="/api/v1")

# Include sub-routers
api_router.include_router(connection_router)
api_router.include_router(system_router)


@api_router.get("", response_model=RootResponse)
async def v1_root() -> RootResponse:
    """Root endpoint with API information"""
    return RootResponse(message="Modbus Web API v1 is running", version=settings.api_version)


# Add root endpoint at application level (not under /api/v1)
root_router = APIRouter()

@root_router.get("/", response_model=RootResponse)
async def root() -> RootResponse:
    """Root endpoint with API information"""
    return RootResponse(message="Modbus Web API is running", version=settings.api_version)


# Export combined router
combined_router = APIRouter()
combined_router.include_router(root_router)
combined_router.include_router(api_router)
