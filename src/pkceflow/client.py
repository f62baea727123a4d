"""PKCE client orchestration for public OAuth 2.0 clients.

Coordinates the flow manager, the user authorization step and the token
exchange into a single authorize() call.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

import httpx

from pkceflow.config import ClientConfig
from pkceflow.models.errors import AuthorizationError, TokenExchangeError
from pkceflow.models.security import DigestCapability
from pkceflow.models.tokens import TokenState
from pkceflow.services.flow import PKCEFlowManager
from pkceflow.services.session import AuthorizationSession
from pkceflow.services.tokens import TokenManager

logger = logging.getLogger(__name__)


class AuthorizationHandler(Protocol):
    """Protocol for handling the user authorization step.

    Allows different strategies for browser interaction:
    - Manual (hand the URL to the developer)
    - Loopback receiver (open browser + local server)
    - Custom UI integration
    """

    async def handle_authorization(self, auth_url: str) -> str:
        """Handle user authorization and return callback URL.

        Args:
            auth_url: Authorization URL for user to visit

        Returns:
            Callback URL received after user authorization
        """
        ...


class ManualAuthorizationHandler:
    """Authorization handler that delegates to a caller-supplied coroutine.

    Suitable for CLI tools and custom integrations that show the URL and
    collect the callback URL themselves.
    """

    def __init__(
        self, callback_handler: Callable[[str], Awaitable[str]] | None = None
    ):
        """Initialize manual authorization handler.

        Args:
            callback_handler: Coroutine function called with the auth URL.
                              Should return the callback URL.
        """
        self.callback_handler = callback_handler

    async def handle_authorization(self, auth_url: str) -> str:
        """Handle authorization by delegating to callback handler or raising."""
        if self.callback_handler:
            return await self.callback_handler(auth_url)
        raise NotImplementedError(
            f"Please visit {auth_url} and provide the callback URL"
        )


class PKCEClient:
    """Public OAuth 2.0 client using the authorization code flow with PKCE.

    Each authorize() call runs one attempt on its own AuthorizationSession.
    """

    def __init__(
        self,
        config: ClientConfig,
        authorization_handler: AuthorizationHandler | None = None,
        capability: DigestCapability | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the client.

        Args:
            config: Client configuration
            authorization_handler: Handler for the user authorization step
            capability: Digest capability probe result; probed when omitted
            http_client: HTTP client for the token endpoint
        """
        self.config = config
        self.authorization_handler = (
            authorization_handler or ManualAuthorizationHandler()
        )
        self.flow_manager = PKCEFlowManager(capability=capability)
        self.token_manager = TokenManager(
            timeout=config.timeout, http_client=http_client
        )

    async def authorize(
        self,
        scope: str | None = None,
        session: AuthorizationSession | None = None,
    ) -> TokenState:
        """Run a complete authorization attempt.

        1. Generate verifier and challenge, build the authorization URL
        2. Hand the URL to the authorization handler
        3. Validate the callback
        4. Exchange the code with the stored verifier

        Args:
            scope: Scope to request; defaults to the configured scope
            session: Session to run the attempt on; a fresh one when omitted

        Returns:
            TokenState with the issued tokens

        Raises:
            AuthorizationError: If the authorization server returned an error
            TokenExchangeError: If the token endpoint returned an error
            Other OAuth2Error subclasses for local failures
        """
        session = session if session is not None else AuthorizationSession()

        logger.info(f"Starting authorization for client {self.config.client_id}")

        auth_url = await self.flow_manager.start_authorization(
            session, self.config, scope
        )

        logger.debug("Handling user authorization")
        callback_url = await self.authorization_handler.handle_authorization(auth_url)

        auth_response = await self.flow_manager.handle_authorization_callback(
            session, callback_url
        )

        if not auth_response.is_success():
            raise AuthorizationError(
                f"Authorization failed: {auth_response.error or 'no authorization code'}"
                + (
                    f" ({auth_response.error_description})"
                    if auth_response.error_description
                    else ""
                ),
                error=auth_response.error,
                error_description=auth_response.error_description,
                error_uri=auth_response.error_uri,
            )

        token_request = self.flow_manager.build_token_request(
            session, self.config, auth_response.code
        )
        token_response = await self.token_manager.exchange_code_for_token(token_request)

        if not token_response.is_success():
            raise TokenExchangeError(
                f"Token exchange failed: {token_response.error or 'unknown_error'}"
                + (
                    f" ({token_response.error_description})"
                    if token_response.error_description
                    else ""
                ),
                response=token_response,
            )

        self.flow_manager.complete(session)

        logger.info(f"Authorization completed for client {self.config.client_id}")
        return token_response.to_token_state()

    async def close(self) -> None:
        """Close the token endpoint connection."""
        await self.token_manager.close()

    async def __aenter__(self) -> PKCEClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
