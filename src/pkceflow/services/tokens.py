"""Token exchange service.

Implements the RFC 6749 token endpoint interaction for the authorization
code grant with a PKCE code_verifier (RFC 7636).
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from pkceflow.models.errors import TokenError
from pkceflow.models.tokens import TokenRequest, TokenResponse

logger = logging.getLogger(__name__)

# Longest slice of a raw response body quoted in an error message
MAX_BODY_IN_MESSAGE = 500


class TokenManager:
    """Exchanges authorization codes for tokens at the token endpoint.

    Uses application/x-www-form-urlencoded encoding as required by RFC 6749.
    Error responses from the server are returned as-is; nothing is retried.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the token manager.

        Args:
            timeout: HTTP request timeout in seconds
            http_client: Client to send requests with; created when omitted
        """
        self.timeout = timeout
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def exchange_code_for_token(
        self, token_request: TokenRequest
    ) -> TokenResponse:
        """Exchange authorization code for tokens.

        Implements RFC 6749 Section 4.1.3 - Access Token Request.

        Args:
            token_request: Token exchange request parameters

        Returns:
            TokenResponse: Token response (success or error)

        Raises:
            TokenError: If token exchange fails due to network/parsing issues
        """
        logger.debug(f"Exchanging authorization code at {token_request.token_endpoint}")

        try:
            headers = {
                "Content-Type": "application/x-www-form-urlencoded",
                "Accept": "application/json",
            }

            form_data = token_request.to_form_data()

            # Log request details (without the code or verifier)
            logger.debug(
                f"Token request: grant_type={form_data['grant_type']}, "
                f"client_id={form_data['client_id']}"
            )

            response = await self._http_client.post(
                token_request.token_endpoint,
                data=form_data,
                headers=headers,
            )

            return self._parse_token_response(response)

        except TokenError:
            raise
        except httpx.HTTPError as e:
            raise TokenError(f"HTTP error during token exchange: {e}") from e
        except Exception as e:
            raise TokenError(f"Unexpected error during token exchange: {e}") from e

    def _parse_token_response(self, response: httpx.Response) -> TokenResponse:
        """Parse token endpoint response into TokenResponse.

        Handles both successful responses (2xx) and error responses (400+)
        according to RFC 6749 Section 5.

        Raises:
            TokenError: If response cannot be parsed; carries the status
                and raw body the server sent
        """
        status_code = response.status_code
        body = response.text

        try:
            response_data = response.json()
        except ValueError as e:
            raise TokenError(
                f"Token endpoint returned non-JSON response "
                f"(status {status_code}): {body[:MAX_BODY_IN_MESSAGE]}",
                status_code=status_code,
                body=body,
            ) from e

        if not isinstance(response_data, dict):
            raise TokenError(
                f"Token endpoint response is not a JSON object (status {status_code})",
                status_code=status_code,
                body=body,
            )

        try:
            token_response = TokenResponse(**{**response_data, "status_code": status_code})
        except ValidationError as e:
            raise TokenError(
                f"Invalid token response format: {e}",
                status_code=status_code,
                body=body,
            ) from e

        if 200 <= status_code < 300:
            # Successful token response (RFC 6749 Section 5.1)
            if token_response.access_token is None and token_response.error is None:
                raise TokenError(
                    "Token response missing required access_token",
                    status_code=status_code,
                    body=body,
                )
            if token_response.is_success():
                logger.info("Token exchange successful")
        else:
            # Error response (RFC 6749 Section 5.2)
            logger.warning(
                f"Token exchange failed with {status_code}: "
                f"{token_response.error or 'unknown_error'} - "
                f"{token_response.error_description or 'No description provided'}"
            )

        return token_response

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()
