"""
Pydantic schemas for the diagnostics and push-ingest API
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class InvalidateRequest(BaseModel):
    """Invalidate by key (with its sub-keys) or by domain pattern"""
    key: Optional[str] = None
    domain: Optional[str] = None
    scope: Optional[str] = None
    qualifiers: List[str] = []


class InvalidateResponse(BaseModel):
    invalidated: int


class ChangeNotificationIn(BaseModel):
    """A change notification pushed by the data service"""
    domain: str
    change_type: str = "UPDATE"
    entity_id: Optional[str] = None
    user_id: Optional[str] = None
    payload: Dict[str, Any] = {}


class NotifyResponse(BaseModel):
    delivered: int
