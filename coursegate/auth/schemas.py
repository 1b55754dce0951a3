"""Authenticated identity as seen by the access engine."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict

from coursegate.auth.permissions import UserRole


class AuthenticatedUser(BaseModel):
    """Identity resolved from a verified access token."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    email: str = ""
    role: UserRole

    @classmethod
    def from_token_payload(cls, payload: dict) -> "AuthenticatedUser":
        """Build from decoded JWT claims (``sub``, ``email``, ``role``)."""
        return cls(
            id=payload["sub"],
            email=payload.get("email", ""),
            role=payload.get("role", UserRole.USER.value),
        )
