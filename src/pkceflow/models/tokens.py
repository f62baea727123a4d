"""Token request, response and state models.

Contains the form-encoded token exchange request and the token endpoint
response handling.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict


@dataclass
class TokenState:
    """Tokens obtained at the end of a completed authorization attempt."""

    access_token: str | None = None
    refresh_token: str | None = None
    token_type: str = "Bearer"
    expires_at: float | None = None  # Unix timestamp
    scope: str | None = None
    id_token: str | None = None


@dataclass(frozen=True)
class TokenRequest:
    """Token exchange request parameters (RFC 6749 Section 4.1.3).

    Immutable request parameters for exchanging an authorization code for
    tokens. Carries the PKCE code_verifier (RFC 7636 Section 4.5).
    """

    # Required fields first
    token_endpoint: str
    code: str
    redirect_uri: str
    client_id: str
    code_verifier: str

    # Optional fields with defaults last
    grant_type: str = "authorization_code"

    def __post_init__(self) -> None:
        if not self.code_verifier:
            raise ValueError("code_verifier must not be empty")
        if not self.code:
            raise ValueError("code must not be empty")

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for application/x-www-form-urlencoded request.

        Token requests must use form encoding, not JSON (RFC 6749 Section 4.1.3).

        Returns:
            Dictionary suitable for httpx data parameter
        """
        return {
            "client_id": self.client_id,
            "grant_type": self.grant_type,
            "code": self.code,
            "redirect_uri": self.redirect_uri,
            "code_verifier": self.code_verifier,
        }


class TokenResponse(BaseModel):
    """Token endpoint response (RFC 6749 Section 5).

    Represents both successful responses (Section 5.1) and error responses
    (Section 5.2). Unknown fields returned by the server are kept.
    """

    model_config = ConfigDict(extra="allow")

    # Success response fields (RFC 6749 Section 5.1)
    access_token: str | None = None
    token_type: str = "Bearer"
    expires_in: int | None = None  # Seconds until expiry
    refresh_token: str | None = None
    scope: str | None = None
    id_token: str | None = None

    # Error response fields (RFC 6749 Section 5.2)
    error: str | None = None
    error_description: str | None = None
    error_uri: str | None = None

    # HTTP status the response arrived with
    status_code: int = 200

    def is_success(self) -> bool:
        """Check if token response indicates success."""
        return (
            200 <= self.status_code < 300
            and self.error is None
            and self.access_token is not None
        )

    def is_error(self) -> bool:
        """Check if token response indicates an error."""
        return self.error is not None or not 200 <= self.status_code < 300

    def calculate_expires_at(self) -> float | None:
        """Calculate absolute expiry timestamp from expires_in.

        Returns:
            Unix timestamp when token expires, or None if no expiry
        """
        if self.expires_in is None:
            return None
        return time.time() + self.expires_in

    def to_token_state(self) -> TokenState:
        """Convert successful token response to TokenState.

        Raises:
            ValueError: If response is not successful
        """
        if not self.is_success():
            raise ValueError("Cannot convert error response to TokenState")

        return TokenState(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            token_type=self.token_type,
            expires_at=self.calculate_expires_at(),
            scope=self.scope,
            id_token=self.id_token,
        )
