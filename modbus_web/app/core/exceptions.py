from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
import time

from modbus_web.app.core.modbus_exceptions import (
    ModbusWebError, ConfigValidationError, TransportError, ReconnectFailedError,
    ReadOnlyRegisterError, InvalidRegisterTypeError, RegisterValueError, SessionNotFoundError
)
from modbus_web.app.utilities.telemetry import logger

from modbus_web.app.schemas.common import ErrorDetail, ErrorResponse


# Exception type -> (HTTP status, headline shown to the client)
ERROR_RESPONSES = {
    ConfigValidationError: (status.HTTP_400_BAD_REQUEST, "Invalid connection configuration"),
    SessionNotFoundError: (status.HTTP_400_BAD_REQUEST, "No Modbus server connected"),
    ReadOnlyRegisterError: (status.HTTP_400_BAD_REQUEST, "Register is read-only"),
    InvalidRegisterTypeError: (status.HTTP_400_BAD_REQUEST, "Invalid register type"),
    RegisterValueError: (status.HTTP_400_BAD_REQUEST, "Invalid register value"),
    ReconnectFailedError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "Modbus server unreachable"),
    TransportError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "Modbus communication failed"),
    ModbusWebError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "Modbus operation failed"),  # Generic fallback
}


def error_response_for(exc: ModbusWebError, headline: str = None) -> JSONResponse:
    """Build the JSON error response for a ModbusWebError"""
    status_code, default_headline = ERROR_RESPONSES[type(exc)] if type(exc) in ERROR_RESPONSES \
        else ERROR_RESPONSES[ModbusWebError]

    error_detail = ErrorDetail(
        error_type=type(exc).__name__,
        message=str(exc),
        session_key=exc.session_key,
        address=exc.address,
        timestamp=time.time()
    )

    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=headline or default_headline,
            details=str(exc),
            detail=error_detail
        ).dict()
    )


def setup_exception_handlers(app: FastAPI):
    """Setup custom exception handlers for the FastAPI app"""

    @app.exception_handler(ModbusWebError)
    async def modbus_exception_handler(request: Request, exc: ModbusWebError):
        """Handle Modbus session exceptions with appropriate HTTP status codes"""
        response = error_response_for(exc)

        logger.error(f"Modbus error: {type(exc).__name__} - {exc}", extra={
            "error_type": type(exc).__name__,
            "session_key": exc.session_key,
            "address": exc.address,
            "status_code": response.status_code,
            "request_path": request.url.path
        })

        return response

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions gracefully"""
        error_detail = ErrorDetail(
            error_type="InternalServerError",
            message="An unexpected error occurred",
            timestamp=time.time()
        )

        logger.error(f"Unexpected error: {str(exc)}", extra={
            "error": str(exc),
            "request_path": request.url.path,
            "request_method": request.method
        }, exc_info=True)

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error="Internal server error", detail=error_detail).dict()
        )
