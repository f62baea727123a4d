"""PKCE (Proof Key for Code Exchange) primitives.

Implements RFC 7636 verifier generation, the S256 challenge derivation and
the explicit selection between S256 and the plain fallback.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import secrets
import string

from pkceflow.models.errors import PKCEError
from pkceflow.models.security import (
    ChallengeMethod,
    DigestCapability,
    PKCEParameters,
)

logger = logging.getLogger(__name__)

VERIFIER_ALPHABET = string.ascii_letters + string.digits

# RFC 7636 Section 4.1
MIN_RECOMMENDED_LENGTH = 43
MAX_RECOMMENDED_LENGTH = 128


def generate_verifier(length: int) -> str:
    """Generate a random code verifier of exactly ``length`` characters.

    Characters are drawn uniformly from ``[A-Za-z0-9]`` with the ``secrets``
    CSPRNG. RFC 7636 recommends 43-128 characters; other lengths are allowed.

    Args:
        length: Number of characters, at least 1

    Returns:
        The code verifier

    Raises:
        ValueError: If length is not a positive integer
    """
    if isinstance(length, bool) or not isinstance(length, int):
        raise ValueError(f"Verifier length must be an integer, got {length!r}")
    if length < 1:
        raise ValueError(f"Verifier length must be at least 1, got {length}")

    if not (MIN_RECOMMENDED_LENGTH <= length <= MAX_RECOMMENDED_LENGTH):
        logger.debug(
            f"Generating {length}-character verifier outside RFC 7636 "
            f"recommended range {MIN_RECOMMENDED_LENGTH}-{MAX_RECOMMENDED_LENGTH}"
        )

    return "".join(secrets.choice(VERIFIER_ALPHABET) for _ in range(length))


def probe_digest_capability() -> DigestCapability:
    """Check whether the SHA-256 digest primitive can be used.

    Returns:
        DigestCapability tagged ``available`` or ``unavailable``
    """
    try:
        hashlib.new("sha256", b"").digest()
    except (ValueError, TypeError) as e:
        logger.warning(f"SHA-256 digest unavailable: {e}")
        return DigestCapability.unavailable(str(e))
    return DigestCapability.available()


def derive_challenge(code_verifier: str) -> str:
    """Compute the S256 code_challenge from a code_verifier.

    Args:
        code_verifier: The code verifier string

    Returns:
        str: BASE64URL(SHA256(code_verifier)) without padding
    """
    digest = hashlib.sha256(code_verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def create_challenge(
    code_verifier: str,
    capability: DigestCapability,
    allow_plain: bool = False,
) -> tuple[str, ChallengeMethod]:
    """Select the challenge transformation from a digest capability probe.

    Args:
        code_verifier: The code verifier to transform
        capability: Result of probe_digest_capability()
        allow_plain: Accept the plain method when SHA-256 is unavailable

    Returns:
        Tuple of (code_challenge, code_challenge_method)

    Raises:
        PKCEError: If SHA-256 is unavailable and plain was not allowed
    """
    if capability.is_available:
        return derive_challenge(code_verifier), ChallengeMethod.S256

    if not allow_plain:
        raise PKCEError(
            "SHA-256 digest is unavailable "
            f"({capability.reason or 'no reason given'}) and the plain "
            "challenge method was not allowed"
        )

    logger.warning(
        "Falling back to the plain code_challenge_method: the code verifier "
        "is sent unhashed in the authorization request"
    )
    return code_verifier, ChallengeMethod.PLAIN


def generate_parameters(
    length: int = 64,
    capability: DigestCapability | None = None,
    allow_plain: bool = False,
) -> PKCEParameters:
    """Generate a verifier and its challenge in one step.

    Args:
        length: Verifier length
        capability: Probe result; probed now when omitted
        allow_plain: Accept the plain method when SHA-256 is unavailable

    Returns:
        PKCEParameters for one authorization attempt
    """
    if capability is None:
        capability = probe_digest_capability()

    code_verifier = generate_verifier(length)
    code_challenge, method = create_challenge(code_verifier, capability, allow_plain)
    return PKCEParameters(
        code_verifier=code_verifier,
        code_challenge=code_challenge,
        code_challenge_method=method,
    )


def verify_code_verifier(
    code_verifier: str,
    code_challenge: str,
    method: ChallengeMethod | str = ChallengeMethod.S256,
) -> bool:
    """Verify a code_verifier against the challenge from the authorization request.

    This is the check an authorization server performs at the token
    endpoint (RFC 7636 Section 4.6).

    Args:
        code_verifier: The verifier submitted at the token endpoint
        code_challenge: The challenge submitted at the authorization endpoint
        method: The code_challenge_method sent with the challenge

    Returns:
        bool: True if the verifier matches the challenge
    """
    if not code_verifier or not code_challenge:
        return False

    method = ChallengeMethod(method)
    if method is ChallengeMethod.S256:
        expected_challenge = derive_challenge(code_verifier)
    else:
        expected_challenge = code_verifier

    return secrets.compare_digest(
        expected_challenge.encode("utf-8"), code_challenge.encode("utf-8")
    )
