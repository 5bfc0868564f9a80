"""
Pydantic схемы административной панели.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class RoleUpdate(BaseModel):
    role: str


class SuspendUpdate(BaseModel):
    is_suspended: bool = True


class SettingUpdate(BaseModel):
    value: Any = None


class SettingItem(BaseModel):
    key: str
    value: Any = None


class BulkSettingsUpdate(BaseModel):
    settings: List[SettingItem] = Field(default_factory=list)


class AuditLogCreate(BaseModel):
    action: str = Field(..., min_length=1)
    resource: str = Field(..., min_length=1)
    resource_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    severity: str = "info"


class InviteTokenCreate(BaseModel):
    expires_in_hours: int = Field(24, ge=1, le=24 * 30)
    purpose: Optional[str] = Field(None, max_length=255)
