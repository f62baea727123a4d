"""Tests for PKCE authorization flow orchestration.

High-impact tests covering one authorization attempt:
- Authorization URL generation with proper parameters
- Verifier storage and last-write-wins restarts
- Callback parsing and state validation
- Fail-closed token request construction
"""

from urllib.parse import parse_qs, urlparse

import pytest

from pkceflow.config import ClientConfig
from pkceflow.models.errors import (
    AuthorizationCallbackError,
    MissingVerifierError,
    PKCEError,
    StateValidationError,
)
from pkceflow.models.flow import FlowStatus
from pkceflow.models.security import ChallengeMethod, DigestCapability
from pkceflow.primitives.pkce import derive_challenge
from pkceflow.services.flow import PKCEFlowManager
from pkceflow.services.session import AuthorizationSession


def make_config(**overrides) -> ClientConfig:
    values = {
        "client_id": "test-client-123",
        "authorization_endpoint": "https://auth.example.com/authorize",
        "token_endpoint": "https://auth.example.com/token",
        "redirect_uri": "http://127.0.0.1:8080/callback",
    }
    values.update(overrides)
    return ClientConfig(**values)


class TestStartAuthorization:
    """Test authorization attempt initiation and URL generation."""

    def setup_method(self):
        # Arrange
        self.flow_manager = PKCEFlowManager(capability=DigestCapability.available())
        self.config = make_config()
        self.session = AuthorizationSession()

    async def test_successful_start_generates_valid_url(self):
        # Act
        auth_url = await self.flow_manager.start_authorization(
            self.session, self.config, scope="read write"
        )

        # Assert - Parse the generated URL
        parsed = urlparse(auth_url)
        query_params = parse_qs(parsed.query)

        assert parsed.scheme == "https"
        assert parsed.netloc == "auth.example.com"
        assert parsed.path == "/authorize"

        assert query_params["response_type"] == ["code"]
        assert query_params["client_id"] == ["test-client-123"]
        assert query_params["redirect_uri"] == ["http://127.0.0.1:8080/callback"]
        assert query_params["code_challenge_method"] == ["S256"]
        assert query_params["state"] == [self.session.state]
        assert query_params["scope"] == ["read write"]

        # Challenge is derived from the verifier kept in the session
        verifier = self.session.load_verifier()
        assert query_params["code_challenge"] == [derive_challenge(verifier)]
        assert verifier not in auth_url

    async def test_start_moves_session_to_pending(self):
        await self.flow_manager.start_authorization(self.session, self.config)

        assert self.session.status is FlowStatus.PENDING
        assert self.session.has_verifier
        assert len(self.session.state) == 32
        assert self.session.redirect_uri == self.config.redirect_uri
        assert self.session.code_challenge_method is ChallengeMethod.S256

    async def test_verifier_length_follows_config(self):
        config = make_config(verifier_length=100)

        await self.flow_manager.start_authorization(self.session, config)

        assert len(self.session.load_verifier()) == 100

    async def test_start_without_scope(self):
        auth_url = await self.flow_manager.start_authorization(
            self.session, self.config
        )

        assert "scope" not in parse_qs(urlparse(auth_url).query)

    async def test_configured_scope_used_by_default(self):
        config = make_config(scope="openid profile")

        auth_url = await self.flow_manager.start_authorization(self.session, config)

        assert parse_qs(urlparse(auth_url).query)["scope"] == ["openid profile"]

    async def test_restart_overwrites_pending_verifier(self):
        # Arrange
        first_url = await self.flow_manager.start_authorization(
            self.session, self.config
        )
        first_verifier = self.session.load_verifier()

        # Act
        second_url = await self.flow_manager.start_authorization(
            self.session, self.config
        )

        # Assert - last write wins, the first challenge can no longer be proven
        second_verifier = self.session.load_verifier()
        assert second_verifier != first_verifier
        first_challenge = parse_qs(urlparse(first_url).query)["code_challenge"][0]
        second_challenge = parse_qs(urlparse(second_url).query)["code_challenge"][0]
        assert derive_challenge(second_verifier) == second_challenge
        assert derive_challenge(second_verifier) != first_challenge
        assert self.session.status is FlowStatus.PENDING

    async def test_endpoint_with_existing_query_string(self):
        config = make_config(
            authorization_endpoint="https://auth.example.com/authorize?tenant=acme"
        )

        auth_url = await self.flow_manager.start_authorization(self.session, config)

        query_params = parse_qs(urlparse(auth_url).query)
        assert query_params["tenant"] == ["acme"]
        assert query_params["response_type"] == ["code"]


class TestPlainFallback:
    def setup_method(self):
        self.flow_manager = PKCEFlowManager(
            capability=DigestCapability.unavailable("sha256 disabled")
        )
        self.session = AuthorizationSession()

    async def test_without_opt_in_refuses_and_stores_nothing(self):
        with pytest.raises(PKCEError):
            await self.flow_manager.start_authorization(self.session, make_config())

        assert not self.session.has_verifier
        assert self.session.status is FlowStatus.IDLE

    async def test_with_opt_in_sends_plain_challenge(self):
        # Arrange
        config = make_config(allow_plain_challenge=True)

        # Act
        auth_url = await self.flow_manager.start_authorization(self.session, config)

        # Assert
        query_params = parse_qs(urlparse(auth_url).query)
        assert query_params["code_challenge_method"] == ["plain"]
        assert query_params["code_challenge"] == [self.session.load_verifier()]
        assert self.session.code_challenge_method is ChallengeMethod.PLAIN


class TestHandleAuthorizationCallback:
    """Test callback URL parsing and state validation."""

    def setup_method(self):
        # Arrange
        self.flow_manager = PKCEFlowManager(capability=DigestCapability.available())
        self.session = AuthorizationSession()
        self.session.state = "test-state-123"

    async def test_successful_callback_with_authorization_code(self):
        # Arrange
        callback_url = (
            "http://127.0.0.1:8080/callback?code=auth-code-456&state=test-state-123"
        )

        # Act
        auth_response = await self.flow_manager.handle_authorization_callback(
            self.session, callback_url
        )

        # Assert
        assert auth_response.is_success()
        assert not auth_response.is_error()
        assert auth_response.code == "auth-code-456"
        assert auth_response.state == "test-state-123"

    async def test_error_callback_returned_verbatim(self):
        # Arrange
        callback_url = (
            "http://127.0.0.1:8080/callback?"
            "error=access_denied&"
            "error_description=User+denied+access&"
            "error_uri=https%3A%2F%2Fauth.example.com%2Fhelp&"
            "state=test-state-123"
        )

        # Act
        auth_response = await self.flow_manager.handle_authorization_callback(
            self.session, callback_url
        )

        # Assert
        assert not auth_response.is_success()
        assert auth_response.is_error()
        assert auth_response.error == "access_denied"
        assert auth_response.error_description == "User denied access"
        assert auth_response.error_uri == "https://auth.example.com/help"
        assert auth_response.code is None

    async def test_state_parameter_mismatch_raises_error(self):
        callback_url = (
            "http://127.0.0.1:8080/callback?code=auth-code-456&state=wrong-state-456"
        )

        with pytest.raises(StateValidationError) as exc_info:
            await self.flow_manager.handle_authorization_callback(
                self.session, callback_url
            )

        assert "State parameter mismatch" in str(exc_info.value)

    async def test_missing_state_parameter_raises_error(self):
        callback_url = "http://127.0.0.1:8080/callback?code=auth-code-456"

        with pytest.raises(StateValidationError):
            await self.flow_manager.handle_authorization_callback(
                self.session, callback_url
            )

    async def test_callback_without_pending_attempt_raises_error(self):
        session = AuthorizationSession()
        callback_url = "http://127.0.0.1:8080/callback?code=abc&state=test-state-123"

        with pytest.raises(StateValidationError):
            await self.flow_manager.handle_authorization_callback(
                session, callback_url
            )

    async def test_malformed_callback_url_raises_callback_error(self):
        with pytest.raises(AuthorizationCallbackError):
            await self.flow_manager.handle_authorization_callback(
                self.session, "http://[::1/callback?code=abc&state=test-state-123"
            )

    async def test_extra_parameters_ignored(self):
        callback_url = (
            "https://example.com:8443/path/callback?"
            "code=abc&state=test-state-123&extra=ignored"
        )

        auth_response = await self.flow_manager.handle_authorization_callback(
            self.session, callback_url
        )

        assert auth_response.code == "abc"


class TestBuildTokenRequest:
    def setup_method(self):
        self.flow_manager = PKCEFlowManager(capability=DigestCapability.available())
        self.config = make_config()

    async def test_token_request_carries_stored_verifier(self):
        # Arrange
        session = AuthorizationSession()
        await self.flow_manager.start_authorization(session, self.config)

        # Act
        token_request = self.flow_manager.build_token_request(
            session, self.config, "auth-code-456"
        )

        # Assert
        form_data = token_request.to_form_data()
        assert form_data == {
            "client_id": "test-client-123",
            "grant_type": "authorization_code",
            "code": "auth-code-456",
            "redirect_uri": "http://127.0.0.1:8080/callback",
            "code_verifier": session.load_verifier(),
        }
        assert token_request.token_endpoint == "https://auth.example.com/token"

    def test_missing_verifier_fails_closed(self):
        session = AuthorizationSession()

        with pytest.raises(MissingVerifierError):
            self.flow_manager.build_token_request(session, self.config, "auth-code")

    async def test_complete_clears_verifier(self):
        # Arrange
        session = AuthorizationSession()
        await self.flow_manager.start_authorization(session, self.config)

        # Act
        self.flow_manager.complete(session)

        # Assert
        assert session.status is FlowStatus.COMPLETED
        assert not session.has_verifier
        with pytest.raises(MissingVerifierError):
            self.flow_manager.build_token_request(session, self.config, "auth-code")
