"""
Authentication Models

This module defines the user identity produced by JWT verification.
"""

from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class UserContext(BaseModel):
    """
    Authenticated user context derived from a verified JWT.

    ``user_id`` keys the user's search history.
    """

    user_id: str = Field(
        ...,
        min_length=1,
        description="Stable user identifier taken from the 'sub' claim.",
    )

    email: Optional[str] = Field(
        default=None,
        description="Email address, when the identity provider includes one.",
    )

    model_config = ConfigDict(
        frozen=True,                # Makes UserContext immutable after creation
        arbitrary_types_allowed=False,
        extra="forbid",             # Prevents claim injection via unexpected fields
    )
