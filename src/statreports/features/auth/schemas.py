"""Token request and response bodies."""
from typing import Optional

from pydantic import BaseModel


class Token(BaseModel):
    access_token: str
    token_type: str


class TokenData(BaseModel):
    """Claims read back from a bearer token."""

    sub: Optional[str] = None
