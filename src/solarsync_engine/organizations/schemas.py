"""Pydantic schemas for organization sync settings."""

from typing import Optional

from pydantic import BaseModel, Field


class SyncSettings(BaseModel):
    auto_sync_enabled: bool = False
    sync_interval_minutes: int = Field(default=15, ge=1, le=1440)


class SyncSettingsUpdate(BaseModel):
    auto_sync_enabled: Optional[bool] = None
    sync_interval_minutes: Optional[int] = Field(default=None, ge=1, le=1440)


class OrganizationSyncSettingsResponse(SyncSettings):
    org_id: int
    name: str
