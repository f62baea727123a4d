"""PKCE authorization code flow orchestration service.

Drives one authorization attempt through its states: building the
authorization redirect, validating the callback and preparing the token
request from the verifier kept in the session.
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs, urlparse

from pkceflow.config import ClientConfig
from pkceflow.models.errors import (
    AuthorizationCallbackError,
    AuthorizationError,
    MissingVerifierError,
    OAuth2Error,
    StateValidationError,
)
from pkceflow.models.flow import (
    AuthorizationRequest,
    AuthorizationResponse,
    FlowStatus,
)
from pkceflow.models.security import DigestCapability
from pkceflow.models.tokens import TokenRequest
from pkceflow.primitives.pkce import generate_parameters, probe_digest_capability
from pkceflow.services.security import (
    generate_state,
    is_secure_redirect_uri,
    validate_state,
)
from pkceflow.services.session import AuthorizationSession

logger = logging.getLogger(__name__)


class PKCEFlowManager:
    """Orchestrates the PKCE authorization code flow for a public client.

    Handles each step of one attempt:
    - Verifier generation and challenge derivation
    - State parameter security (CSRF protection)
    - Authorization URL construction
    - Callback URL parsing and validation
    - Token request construction from the stored verifier
    """

    def __init__(self, capability: DigestCapability | None = None):
        """Initialize the flow manager.

        Args:
            capability: Digest capability probe result; probed once when omitted
        """
        self.capability = capability or probe_digest_capability()

    async def start_authorization(
        self,
        session: AuthorizationSession,
        config: ClientConfig,
        scope: str | None = None,
    ) -> str:
        """Start an authorization attempt (idle -> pending).

        Generates the verifier and challenge, stores the verifier and state
        in the session, then builds the authorization URL the user should
        visit. Starting again on a pending session replaces its verifier.

        Args:
            session: Session that carries this attempt
            config: Client configuration
            scope: Scope to request; defaults to config.scope

        Returns:
            Authorization URL for the user to visit

        Raises:
            PKCEError: If no usable challenge method is available
            AuthorizationError: If flow setup fails
        """
        if not is_secure_redirect_uri(config.redirect_uri):
            logger.warning(
                f"Redirect URI {config.redirect_uri} is neither HTTPS nor loopback"
            )

        try:
            pkce_params = generate_parameters(
                length=config.verifier_length,
                capability=self.capability,
                allow_plain=config.allow_plain_challenge,
            )
            state = generate_state()

            auth_request = AuthorizationRequest(
                authorization_endpoint=config.authorization_endpoint,
                client_id=config.client_id,
                redirect_uri=config.redirect_uri,
                code_challenge=pkce_params.code_challenge,
                code_challenge_method=pkce_params.code_challenge_method,
                state=state,
                scope=scope if scope is not None else config.scope,
            )
            authorization_url = auth_request.build_authorization_url()

        except OAuth2Error:
            raise
        except Exception as e:
            raise AuthorizationError(f"Failed to start authorization flow: {e}") from e

        if session.status is FlowStatus.PENDING:
            logger.info("Restarting pending authorization attempt")

        session.store_verifier(pkce_params.code_verifier)
        session.state = state
        session.redirect_uri = config.redirect_uri
        session.code_challenge_method = pkce_params.code_challenge_method
        session.status = FlowStatus.PENDING

        logger.info(
            f"Generated authorization URL for client {config.client_id} "
            f"(code_challenge_method={pkce_params.code_challenge_method.value})"
        )
        return authorization_url

    async def handle_authorization_callback(
        self,
        session: AuthorizationSession,
        callback_url: str,
    ) -> AuthorizationResponse:
        """Handle the redirect back from the authorization server.

        Parses the callback URL and validates the state parameter against the
        session. Error responses are returned unchanged for the caller.

        Args:
            session: Session that started the attempt
            callback_url: Full callback URL received on the redirect URI

        Returns:
            AuthorizationResponse: Parsed callback response

        Raises:
            AuthorizationCallbackError: If the callback URL is malformed
            StateValidationError: If the state parameter is missing or wrong
        """
        try:
            logger.debug("Processing authorization callback")

            auth_response = self._parse_callback_url(callback_url)

            if auth_response.state is None:
                raise StateValidationError(
                    "Authorization server callback missing required state parameter"
                )
            if session.state is None:
                raise StateValidationError(
                    "No authorization attempt is pending for this session"
                )

            validate_state(session.state, auth_response.state)

            if auth_response.is_success():
                logger.info(
                    "Authorization callback successful - received authorization code"
                )
            elif auth_response.is_error():
                logger.warning(
                    f"Authorization callback contained error: {auth_response.error} - "
                    f"{auth_response.error_description}"
                )
            else:
                logger.warning("Authorization callback missing both code and error")

            return auth_response

        except StateValidationError:
            raise
        except Exception as e:
            raise AuthorizationCallbackError(
                f"Failed to process authorization callback: {e}"
            ) from e

    def build_token_request(
        self,
        session: AuthorizationSession,
        config: ClientConfig,
        code: str,
    ) -> TokenRequest:
        """Prepare the token exchange for the pending attempt.

        Fails closed: without a stored verifier no request is built.

        Args:
            session: Session that started the attempt
            config: Client configuration
            code: Authorization code from the callback

        Returns:
            TokenRequest carrying the stored code_verifier

        Raises:
            MissingVerifierError: If the session holds no verifier
        """
        if session.status is not FlowStatus.PENDING:
            logger.warning(
                f"Token exchange requested while session is {session.status.value}"
            )
        if not session.has_verifier:
            raise MissingVerifierError()

        return TokenRequest(
            token_endpoint=config.token_endpoint,
            code=code,
            redirect_uri=session.redirect_uri or config.redirect_uri,
            client_id=config.client_id,
            code_verifier=session.load_verifier(),
        )

    def complete(self, session: AuthorizationSession) -> None:
        """Mark the attempt completed (pending -> completed) and drop the verifier."""
        session.clear()
        session.status = FlowStatus.COMPLETED
        logger.debug("Authorization attempt completed")

    def _parse_callback_url(self, callback_url: str) -> AuthorizationResponse:
        """Parse callback URL into AuthorizationResponse.

        Args:
            callback_url: Full callback URL from authorization server

        Returns:
            AuthorizationResponse: Parsed callback parameters
        """
        parsed = urlparse(callback_url)
        query_params = parse_qs(parsed.query)

        # Extract single values from query parameter lists
        def get_single_param(key: str) -> str | None:
            values = query_params.get(key, [])
            return values[0] if values else None

        return AuthorizationResponse(
            code=get_single_param("code"),
            state=get_single_param("state"),
            error=get_single_param("error"),
            error_description=get_single_param("error_description"),
            error_uri=get_single_param("error_uri"),
        )
