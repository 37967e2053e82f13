"""Pydantic schemas for authentication API."""

from pydantic import BaseModel, Field


class PasswordStrengthRequest(BaseModel):
    password: str = Field(..., max_length=128)


class CsrfTokenResponse(BaseModel):
    csrf_token: str
