"""Scoped session context for a single authorization attempt.

The session owns the one verifier slot the flow reads back at token
exchange time. Pass it explicitly between the start of the flow and the
callback; concurrent attempts need separate sessions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pkceflow.models.errors import MissingVerifierError
from pkceflow.models.flow import FlowStatus
from pkceflow.models.security import ChallengeMethod

logger = logging.getLogger(__name__)


@dataclass
class AuthorizationSession:
    """Mutable per-attempt state for the PKCE authorization code flow.

    Holds the code verifier, the CSRF state and the parameters that must be
    repeated at the token endpoint. The verifier slot is last-write-wins:
    starting a new attempt on the same session replaces the old verifier.
    """

    status: FlowStatus = FlowStatus.IDLE
    state: str | None = None
    redirect_uri: str | None = None
    code_challenge_method: ChallengeMethod | None = None
    _code_verifier: str | None = field(default=None, init=False)

    @property
    def has_verifier(self) -> bool:
        return bool(self._code_verifier)

    def store_verifier(self, code_verifier: str) -> None:
        """Store the code verifier, replacing any previous one.

        Raises:
            ValueError: If the verifier is empty
        """
        if not code_verifier:
            raise ValueError("Refusing to store an empty code verifier")

        if self._code_verifier is not None:
            logger.debug("Replacing code verifier from an unfinished authorization attempt")

        self._code_verifier = code_verifier

    def load_verifier(self) -> str:
        """Return the stored code verifier.

        Raises:
            MissingVerifierError: If no verifier was stored for this session
        """
        if not self._code_verifier:
            raise MissingVerifierError()
        return self._code_verifier

    def clear(self) -> None:
        """Forget the verifier and state, returning the session to idle."""
        self._code_verifier = None
        self.state = None
        self.redirect_uri = None
        self.code_challenge_method = None
        self.status = FlowStatus.IDLE

    def __repr__(self) -> str:
        return (
            f"AuthorizationSession(status={self.status.value!r}, "
            f"has_verifier={self.has_verifier})"
        )
