import time

from fastapi import HTTPException, Request, Response, status

from modbus_web.app.config import settings
from modbus_web.app.core.connection_cache import ConnectionCache


def get_connection_cache(request: Request) -> ConnectionCache:
    """Dependency to get the application's connection cache"""
    cache = getattr(request.app.state, "connection_cache", None)

    if cache is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is initializing, please try again later"
        )

    return cache


def generate_session_key() -> str:
    return str(time.time_ns())


def get_session_key(request: Request, response: Response) -> str:
    """
    Dependency resolving the caller's session key from its cookie.

    A caller without the cookie (or with an empty one) gets a fresh key,
    which is set on the response so later requests reuse the same session.
    """
    session_key = request.cookies.get(settings.session_cookie_name)
    if not session_key:
        session_key = generate_session_key()
        response.set_cookie(
            key=settings.session_cookie_name,
            value=session_key,
            max_age=settings.session_cookie_max_age,
            path="/",
            httponly=True
        )
    return session_key
