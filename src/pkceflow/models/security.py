"""Security-related models for PKCE authorization flows.

Contains the challenge method enumeration, the digest capability probe
result and the per-attempt PKCE parameters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ChallengeMethod(str, Enum):
    """Code challenge transformation methods (RFC 7636 Section 4.2)."""

    S256 = "S256"
    PLAIN = "plain"


class DigestStatus(str, Enum):
    """Outcome of probing for the SHA-256 digest primitive."""

    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class DigestCapability:
    """Tagged result of probing for the SHA-256 digest primitive.

    When ``status`` is unavailable, ``reason`` explains why.
    """

    status: DigestStatus
    reason: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", DigestStatus(self.status))

    @classmethod
    def available(cls) -> DigestCapability:
        return cls(status=DigestStatus.AVAILABLE)

    @classmethod
    def unavailable(cls, reason: str) -> DigestCapability:
        return cls(status=DigestStatus.UNAVAILABLE, reason=reason)

    @property
    def is_available(self) -> bool:
        return self.status is DigestStatus.AVAILABLE


@dataclass(frozen=True)
class PKCEParameters:
    """PKCE (Proof Key for Code Exchange) parameters for one authorization attempt.

    Immutable parameters generated for each authorization flow to prevent
    authorization code interception attacks (RFC 7636).
    """

    code_verifier: str = field()
    code_challenge: str = field()
    code_challenge_method: ChallengeMethod = field(default=ChallengeMethod.S256)

    def __post_init__(self) -> None:
        """Validate the verifier/challenge pair is consistent."""
        if not self.code_verifier:
            raise ValueError("code_verifier must not be empty")
        if not self.code_challenge:
            raise ValueError("code_challenge must not be empty")
        method = ChallengeMethod(self.code_challenge_method)
        if method is ChallengeMethod.PLAIN and self.code_challenge != self.code_verifier:
            raise ValueError("plain code_challenge must equal the code_verifier")
        object.__setattr__(self, "code_challenge_method", method)
