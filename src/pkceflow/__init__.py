"""PKCE authorization code flow for public OAuth 2.0 clients.

Components:
    - PKCEClient: Runs a complete authorization attempt
    - AuthorizationSession: Per-attempt context holding the code verifier
    - PKCEFlowManager: Idle -> pending -> completed transitions
    - TokenManager: Token endpoint exchange
    - LoopbackCallbackReceiver: Local redirect receiver
    - ClientConfig: Client settings, loadable from PKCE_* variables
    - PKCE primitives: generate_verifier, derive_challenge,
      probe_digest_capability, create_challenge, verify_code_verifier
"""

from pkceflow.client import (
    AuthorizationHandler,
    ManualAuthorizationHandler,
    PKCEClient,
)
from pkceflow.config import ClientConfig
from pkceflow.models.errors import (
    AuthorizationCallbackError,
    AuthorizationError,
    ConfigurationError,
    MissingVerifierError,
    OAuth2Error,
    PKCEError,
    StateValidationError,
    TokenError,
    TokenExchangeError,
)
from pkceflow.models.flow import FlowStatus
from pkceflow.models.security import (
    ChallengeMethod,
    DigestCapability,
    DigestStatus,
    PKCEParameters,
)
from pkceflow.models.tokens import TokenState
from pkceflow.primitives.pkce import (
    create_challenge,
    derive_challenge,
    generate_parameters,
    generate_verifier,
    probe_digest_capability,
    verify_code_verifier,
)
from pkceflow.services.callback import LoopbackCallbackReceiver
from pkceflow.services.flow import PKCEFlowManager
from pkceflow.services.session import AuthorizationSession
from pkceflow.services.tokens import TokenManager

__all__ = [
    # Client
    "PKCEClient",
    "AuthorizationHandler",
    "ManualAuthorizationHandler",
    "ClientConfig",
    # Flow
    "AuthorizationSession",
    "PKCEFlowManager",
    "TokenManager",
    "LoopbackCallbackReceiver",
    "FlowStatus",
    "TokenState",
    # PKCE
    "ChallengeMethod",
    "DigestCapability",
    "DigestStatus",
    "PKCEParameters",
    "create_challenge",
    "derive_challenge",
    "generate_parameters",
    "generate_verifier",
    "probe_digest_capability",
    "verify_code_verifier",
    # Errors
    "OAuth2Error",
    "ConfigurationError",
    "PKCEError",
    "MissingVerifierError",
    "AuthorizationError",
    "AuthorizationCallbackError",
    "StateValidationError",
    "TokenError",
    "TokenExchangeError",
]
