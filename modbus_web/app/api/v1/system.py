from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from modbus_web.app.config import settings
from modbus_web.app.utilities.telemetry import logger
from modbus_web.app.utilities.serial_ports import list_serial_ports

from modbus_web.app.schemas.common import VersionInfoResponse
from modbus_web.app.schemas.connection import SerialPortsResponse

router = APIRouter(tags=["system"])

GIT_COMMIT_LENGTH = 8


@router.get("/serial-ports", response_model=SerialPortsResponse)
def serial_ports():
    """Serial devices available for RTU connections"""
    try:
        ports = list_serial_ports()
    except OSError as e:
        logger.error(f"Failed to list serial ports: {e}", extra={
            "component": "api",
            "error": str(e)
        })
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to list serial ports", "details": str(e)}
        )

    return SerialPortsResponse(ports=ports)


@router.get("/version-info", response_model=VersionInfoResponse)
def version_info() -> VersionInfoResponse:
    return VersionInfoResponse(
        build_time=settings.build_time,
        git_commit=settings.git_commit[:GIT_COMMIT_LENGTH]
    )
