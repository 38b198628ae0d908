"""Pydantic schemas for registration and login."""

from pydantic import BaseModel, Field, field_validator


class Credentials(BaseModel):
    """Body of both POST /register and POST /login."""

    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("username")
    @classmethod
    def no_surrounding_whitespace(cls, v: str) -> str:
        if v != v.strip():
            raise ValueError("username must not start or end with whitespace")
        return v


class RegisterResponse(BaseModel):
    message: str = "User registered successfully"
    username: str


class TokenResponse(BaseModel):
    """Login result. token is rendered ready to use: "Bearer <jwt>"."""

    token: str
    token_type: str = "bearer"
    expires_in: int


class IdentityRead(BaseModel):
    username: str
