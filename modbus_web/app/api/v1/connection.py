from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Response, status
from typing import List
import time

from modbus_web.app.utilities.telemetry import logger

from modbus_web.app.schemas.common import MessageResponse
from modbus_web.app.schemas.connection import (
    ConnectionRequest,
    ReadRequest,
    ValueDetail,
    WriteRequest,
    WriteResponse,
    StatusResponse
)
from modbus_web.app.core.connection_cache import ConnectionCache
from modbus_web.app.core.exceptions import error_response_for
from modbus_web.app.core.modbus_exceptions import ModbusWebError
from modbus_web.app.core.register_io import read_with_auto_reconnect, write_with_auto_reconnect
from modbus_web.app.core.session import connect
from modbus_web.app.models.modbus_config import ModbusConfig
from modbus_web.app.dependencies import get_connection_cache, get_session_key
from modbus_web.app.utilities.converters import (
    convert_payload_to_value_detail,
    convert_status_to_response,
    convert_write_outcome_to_result
)

router = APIRouter(tags=["connection"])


@router.post("/set-server", response_model=MessageResponse)
def set_server(request: ConnectionRequest, background_tasks: BackgroundTasks,
               cache: ConnectionCache = Depends(get_connection_cache),
               session_key: str = Depends(get_session_key)):
    """
    Connect the caller to a Modbus TCP server or RTU serial line.

    Any session the caller already had is closed first. Idle sessions of
    other callers are swept in the background.
    """
    background_tasks.add_task(cache.sweep)
    cache.delete(session_key)

    config = ModbusConfig.from_dict(request.dict())
    try:
        session = connect(config)
    except ModbusWebError as e:
        e.session_key = session_key
        logger.warning(f"Failed to connect to Modbus server: {e}", extra={
            "component": "api",
            "session_key": session_key,
            "target": config.describe(),
            "error": str(e)
        })
        return error_response_for(e, headline="Failed to connect to Modbus server")

    cache.save(session_key, session)

    logger.info("Connected to Modbus server", extra={
        "component": "api",
        "session_key": session_key,
        "target": session.config.describe(),
        "config": session.config.to_dict()
    })
    return MessageResponse(message="Connected to Modbus server")


@router.post("/get-value", response_model=List[ValueDetail])
def get_value(request: ReadRequest,
              cache: ConnectionCache = Depends(get_connection_cache),
              session_key: str = Depends(get_session_key)):
    """
    Read one element per requested address, in order.

    The first failing read aborts the request; values read before it are discarded.
    """
    session = cache.require(session_key)

    start_time = time.time()
    values = []
    for item in request.ids:
        try:
            data = read_with_auto_reconnect(session, item.register_type, item.address)
        except ModbusWebError as e:
            e.session_key = session_key
            return error_response_for(e, headline="Failed to read value from Modbus server")
        values.append(convert_payload_to_value_detail(data))

    logger.debug(f"Read {len(values)} values", extra={
        "component": "api",
        "session_key": session_key,
        "duration_ms": int((time.time() - start_time) * 1000)
    })
    return values


@router.post("/set-value", response_model=WriteResponse, response_model_exclude_none=True)
def set_value(request: WriteRequest, response: Response,
              cache: ConnectionCache = Depends(get_connection_cache),
              session_key: str = Depends(get_session_key)) -> WriteResponse:
    """
    Write each item in order, continuing past failures.

    Returns 200 when every write succeeded and 206 Partial Content otherwise,
    with a per-item status either way.
    """
    if not request.items:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="items must not be empty"
        )

    session = cache.require(session_key)

    results = []
    failed = 0
    for item in request.items:
        try:
            write_with_auto_reconnect(session, item.register_type, item.address, item.value)
        except ModbusWebError as e:
            failed += 1
            results.append(convert_write_outcome_to_result(item.register_type, item.address, e))
            continue
        results.append(convert_write_outcome_to_result(item.register_type, item.address))

    if failed:
        response.status_code = status.HTTP_206_PARTIAL_CONTENT
        logger.warning(f"{failed} of {len(results)} writes failed", extra={
            "component": "api",
            "session_key": session_key,
            "failed_count": failed
        })

    return WriteResponse(results=results)


@router.get("/connection-status", response_model=StatusResponse, response_model_exclude_none=True)
def connection_status(cache: ConnectionCache = Depends(get_connection_cache),
                      session_key: str = Depends(get_session_key)) -> StatusResponse:
    """Health of the caller's session, reconnecting first when it is down"""
    session, found = cache.get(session_key)
    if not found:
        return StatusResponse(connected=False)

    try:
        session.ensure_connection(0)
    except ModbusWebError as e:
        # Already recorded as last_error on the session
        logger.debug(f"Reconnect during status check failed: {e}", extra={
            "component": "api",
            "session_key": session_key
        })

    snapshot = session.status()
    logger.debug(f"Connection status: {snapshot.state.value}", extra={
        "component": "api",
        "session_key": session_key,
        "state": snapshot.state.value
    })
    return convert_status_to_response(snapshot)
