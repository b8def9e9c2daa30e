"""Signed, stateless tokens for approving or rejecting documents from email.

A token carries everything the email endpoint needs to act on behalf of the
designated approver. It is signed, not encrypted, and it is not stored:
replay is blocked only by the workflow refusing to leave a terminal status.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable

import structlog
from jose import JWTError, jwt

from procurement.backend.src.core.config import DEFAULT_APPROVAL_TOKEN_SECRET, Settings

LOGGER = structlog.get_logger(__name__)

TOKEN_TYPE = "document-approval"


class TokenAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


@dataclass(frozen=True, slots=True)
class ApprovalClaims:
    document_id: int
    document_kind: str
    approver_id: int
    approver_role: str
    approver_email: str
    action: TokenAction
    issued_at: datetime
    expires_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApprovalTokenService:
    """Issue and verify HS256 approval tokens.

    ``verify`` never raises: every failure (malformed, bad signature, expired,
    wrong token type, unknown action) yields ``None`` so callers can show a
    single generic message.
    """

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        ttl: timedelta = timedelta(hours=72),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret:
            raise ValueError("An approval token secret is required")
        self._secret = secret
        self._algorithm = algorithm
        self._ttl = ttl
        self._clock = clock

    @classmethod
    def from_settings(
        cls, settings: Settings, *, clock: Callable[[], datetime] = _utcnow
    ) -> "ApprovalTokenService":
        if (
            settings.approval_token_secret == DEFAULT_APPROVAL_TOKEN_SECRET
            and not settings.allows_default_secrets
        ):
            raise ValueError(
                f"APPROVAL_TOKEN_SECRET must be set when APP_ENV is {settings.environment!r}"
            )
        return cls(
            settings.approval_token_secret,
            algorithm=settings.approval_token_algorithm,
            ttl=timedelta(hours=settings.approval_token_ttl_hours),
            clock=clock,
        )

    def issue(
        self,
        document_id: int,
        approver_id: int,
        approver_role: str,
        approver_email: str,
        action: TokenAction | str,
        *,
        document_kind: str,
    ) -> str:
        action = TokenAction(action)
        issued_at = self._clock()
        payload: dict[str, Any] = {
            "typ": TOKEN_TYPE,
            "document_id": int(document_id),
            "document_kind": document_kind,
            "approver_id": int(approver_id),
            "approver_role": (approver_role or "").upper(),
            "approver_email": approver_email,
            "action": action.value,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self._ttl).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str | None) -> ApprovalClaims | None:
        if not isinstance(token, str) or not token:
            return None

        try:
            # Expiry is checked below against the injected clock.
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            LOGGER.info("approval_token_rejected", reason=str(exc))
            return None

        if payload.get("typ") != TOKEN_TYPE:
            LOGGER.info("approval_token_rejected", reason="wrong_type")
            return None

        try:
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
            claims = ApprovalClaims(
                document_id=int(payload["document_id"]),
                document_kind=str(payload["document_kind"]),
                approver_id=int(payload["approver_id"]),
                approver_role=str(payload.get("approver_role") or ""),
                approver_email=str(payload.get("approver_email") or ""),
                action=TokenAction(payload["action"]),
                issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
                expires_at=expires_at,
            )
        except (KeyError, TypeError, ValueError) as exc:
            LOGGER.info("approval_token_rejected", reason=f"bad_claims: {exc}")
            return None

        if self._clock() >= expires_at:
            LOGGER.info("approval_token_rejected", reason="expired")
            return None

        return claims


__all__ = ["ApprovalClaims", "ApprovalTokenService", "TOKEN_TYPE", "TokenAction"]
