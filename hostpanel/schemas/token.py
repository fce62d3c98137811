"""Token schemas for JWT authentication."""

from pydantic import BaseModel, Field


class Token(BaseModel):
    """Access/refresh token pair returned by login and refresh."""

    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")
    token_type: str = Field(default="bearer", description="Token type")


class RefreshTokenRequest(BaseModel):
    """Refresh token request schema."""

    refresh_token: str = Field(..., description="Refresh token issued at login")
