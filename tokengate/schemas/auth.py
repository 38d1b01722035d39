"""Pydantic schemas for the token endpoints.

Bodies are camelCase on the wire; snake_case field names are accepted on
input as well.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SignInRequest(CamelModel):
    """Request for sign-in."""

    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)


class TokenResponse(CamelModel):
    """Access/refresh pair issued at sign-in."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token expiry in seconds")


class RefreshRequest(CamelModel):
    """Request for token refresh."""

    refresh_token: str = Field(..., min_length=1)


class RefreshResponse(CamelModel):
    """New access token, plus a new refresh token only when it was rotated."""

    access_token: str
    refresh_token: str | None = Field(
        None,
        description="Present only when the presented refresh token was close to expiry",
    )
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token expiry in seconds")


class LogoutRequest(CamelModel):
    """Tokens to revoke. Either may be omitted."""

    access_token: str | None = None
    refresh_token: str | None = None


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str


class PrincipalResponse(BaseModel):
    """The authenticated principal."""

    subject: str
    authorities: list[str]
