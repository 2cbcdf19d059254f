from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator

from app.utils.time import ensure_utc


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    email: str
    name: str | None = None
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class RegisterUserPayload(BaseModel):
    email: str
    name: str | None = None

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        cleaned = value.strip().lower()
        local, _, domain = cleaned.partition("@")
        if not local or not domain:
            raise ValueError("email must look like name@domain")
        return cleaned

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str | None) -> str | None:
        if not value or not value.strip():
            return None
        return value.strip()
