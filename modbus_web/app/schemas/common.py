from pydantic import BaseModel
from typing import Optional


class RootResponse(BaseModel):
    message: str
    version: str


class MessageResponse(BaseModel):
    message: str


class VersionInfoResponse(BaseModel):
    build_time: str
    git_commit: str


class ErrorDetail(BaseModel):
    error_type: str
    message: str
    session_key: Optional[str] = None
    address: Optional[int] = None
    timestamp: float


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
    detail: ErrorDetail
