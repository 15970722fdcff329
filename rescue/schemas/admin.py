"""Admin API request/response schemas."""

from pydantic import BaseModel, Field


class SecretUpdate(BaseModel):
    secret: str = Field(..., min_length=1, max_length=256)


class RescueUrlResponse(BaseModel):
    rescue_url: str
    # secret is only ever shown embedded in the URL
