"""
Identity provider response schemas.

Contains Pydantic models for the JSON bodies returned by the delegation,
resource-owner and token endpoints.
"""

from pydantic import BaseModel, Field, field_validator


class TokenResponse(BaseModel):
    """Token endpoint response. Unknown fields are kept but not used."""

    id_token: str | None = Field(default=None, description="OpenID Connect id token")
    access_token: str | None = Field(default=None, description="OAuth access token")
    token_type: str | None = Field(default=None, description="Usually 'Bearer'")
    expires_in: int | None = Field(default=None, description="Lifetime in seconds")
    scope: str | None = None
    refresh_token: str | None = None

    @field_validator("id_token", "access_token")
    @classmethod
    def blank_token_is_missing(cls, v: str | None) -> str | None:
        """Treat empty or whitespace-only tokens as absent."""
        if v is None or not v.strip():
            return None
        return v

    def token(self, preferred: str, fallback: str) -> str | None:
        return getattr(self, preferred) or getattr(self, fallback)

    model_config = {
        "extra": "allow",
        "json_schema_extra": {
            "examples": [
                {
                    "id_token": "eyJhbGciOiJSUzI1NiJ9.eyJzdWIiOiJhYmMifQ.sig",
                    "token_type": "Bearer",
                    "expires_in": 36000,
                },
                {
                    "access_token": "eyJhbGciOiJSUzI1NiJ9.eyJhdWQiOiJhcGkifQ.sig",
                    "token_type": "Bearer",
                    "expires_in": 86400,
                    "scope": "read:orders",
                },
            ]
        },
    }


__all__ = ["TokenResponse"]
