"""Exception hierarchy for PKCE authorization code flow errors.

Provides specific exception types for different failure modes so callers
can tell a restart-the-flow condition from a server-side rejection.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pkceflow.models.tokens import TokenResponse


class OAuth2Error(Exception):
    """Base exception for all OAuth 2.0 related errors."""

    pass


class ConfigurationError(OAuth2Error):
    """Raised when client configuration is missing or invalid."""

    pass


class PKCEError(OAuth2Error):
    """Raised when PKCE parameter generation or validation fails."""

    pass


class MissingVerifierError(PKCEError):
    """Raised when no code verifier is stored for the token exchange.

    The authorization attempt cannot be completed. The user has to start a
    new authorization flow; retrying the exchange will not help.
    """

    def __init__(
        self,
        message: str = (
            "No code verifier found for this session. "
            "Please restart the authorization flow."
        ),
    ):
        super().__init__(message)


class AuthorizationError(OAuth2Error):
    """Raised when the authorization server denies the authorization request."""

    def __init__(
        self,
        message: str,
        error: str | None = None,
        error_description: str | None = None,
        error_uri: str | None = None,
    ):
        super().__init__(message)
        self.error = error
        self.error_description = error_description
        self.error_uri = error_uri


class AuthorizationCallbackError(OAuth2Error):
    """Raised when authorization server callback data is malformed or invalid.

    This indicates the authorization server sent an invalid callback URL,
    not that our callback handling code failed.
    """

    pass


class StateValidationError(AuthorizationCallbackError):
    """Raised when OAuth state parameter validation fails.

    This indicates either a missing state parameter or a state mismatch,
    which could indicate a CSRF attack or authorization server issue.
    """

    pass


class TokenError(OAuth2Error):
    """Raised when the token request fails on the wire or cannot be parsed.

    When the token endpoint did answer, ``status_code`` and the raw ``body``
    are kept so the caller sees what the server sent.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TokenExchangeError(TokenError):
    """Raised when the token endpoint answers the exchange with an error.

    The server's response is attached unchanged as ``response``.
    """

    def __init__(self, message: str, response: TokenResponse):
        super().__init__(message, status_code=response.status_code)
        self.response = response
