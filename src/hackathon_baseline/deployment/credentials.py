"""Scoped credentials for member account access.

The CredentialBroker exchanges an account ID and role name for a
short-lived ScopedCredential through the control-plane client. A
credential is bound to the account it was issued for.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from ..core.errors import ExternalServiceError


logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600
# STS AssumeRole DurationSeconds bounds
MIN_TTL_SECONDS = 900
MAX_TTL_SECONDS = 43200


@dataclass(frozen=True)
class ScopedCredential:
    """Immutable temporary credentials for one member account."""

    account_id: str
    access_key: str
    secret_key: str = field(repr=False)
    session_token: str = field(repr=False)
    expires_at: datetime

    def __repr__(self) -> str:
        return (
            f"ScopedCredential(account_id={self.account_id}, "
            f"access_key={self.access_key[:4]}***, "
            f"expires_at={self.expires_at.isoformat()})"
        )

    def is_for(self, account_id: str) -> bool:
        return self.account_id == account_id

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return self.expires_at <= now


class CredentialBroker:
    """Acquires scoped credentials for member accounts.

    The broker does not retry; AuthorizationError and TransientError from
    the control plane propagate unchanged so the caller can tell them apart.
    """

    def __init__(
        self,
        control_plane,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        """Initialize the credential broker.

        Args:
            control_plane: Client exposing assume_role(account_id, role_name, ttl_seconds)
            default_ttl: Credential lifetime in seconds when none is requested
            clock: Returns the current UTC time
        """
        self._validate_ttl(default_ttl)
        self.control_plane = control_plane
        self.default_ttl = default_ttl
        self._clock = clock

    @staticmethod
    def _validate_ttl(ttl: int) -> None:
        if not MIN_TTL_SECONDS <= ttl <= MAX_TTL_SECONDS:
            raise ValueError(
                f"Credential TTL must be between {MIN_TTL_SECONDS} and "
                f"{MAX_TTL_SECONDS} seconds, got {ttl}"
            )

    def acquire(self, account_id: str, role_name: str, ttl: Optional[int] = None) -> ScopedCredential:
        """Acquire a scoped credential for an account.

        Args:
            account_id: Target AWS account ID
            role_name: Role to assume in the target account
            ttl: Credential lifetime in seconds (default: 3600)

        Returns:
            ScopedCredential issued for account_id

        Raises:
            AuthorizationError: When the role may not be assumed
            TransientError: When the trust exchange is unreachable or throttled
            ExternalServiceError: When the returned credential is unusable
        """
        if ttl is None:
            ttl = self.default_ttl
        self._validate_ttl(ttl)

        logger.info(f"Assuming role {role_name} in account {account_id}")
        credential = self.control_plane.assume_role(account_id, role_name, ttl)

        if not credential.is_for(account_id):
            raise ExternalServiceError(
                f"Credential issued for account {credential.account_id}, "
                f"expected {account_id}"
            )

        if credential.is_expired(self._clock()):
            raise ExternalServiceError(
                f"Credential for account {account_id} expired at "
                f"{credential.expires_at.isoformat()}"
            )

        logger.info(
            f"Acquired credential for account {account_id} "
            f"(expires {credential.expires_at.isoformat()})"
        )
        return credential
