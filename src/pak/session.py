"""Session negotiation with a homeserver.

Every authenticated command negotiates a fresh session:

1. signin with the held keypair; a rejection is expected for identities that
   were never registered and is absorbed
2. after a rejected signin only, signup (optionally with an invite token);
   failures here are surfaced
3. confirm a live session exists for the public identity
"""

from __future__ import annotations

import enum
import logging

from pak.crypto.keypair import Keypair
from pak.errors import (
    InviteTokenRequiredError,
    NoCredentialError,
    SessionNotEstablishedError,
    SignupError,
    TransportError,
)
from pak.transport.base import SessionInfo, TransportClient

logger = logging.getLogger(__name__)

_INVITE_TOKEN_MARKERS = ("signup_token required", "signup token required", "invite")


class SessionState(str, enum.Enum):
    NO_CREDENTIAL = "no_credential"
    CREDENTIAL_HELD = "credential_held"
    SESSION_PENDING = "session_pending"
    SESSION_ESTABLISHED = "session_established"
    SESSION_FAILED = "session_failed"


class AuthStep(str, enum.Enum):
    SIGNED_IN = "signed_in"
    SIGNIN_REJECTED = "signin_rejected"
    SIGNED_UP = "signed_up"


def is_invite_token_error(exc: BaseException) -> bool:
    text = str(exc).lower()
    return any(marker in text for marker in _INVITE_TOKEN_MARKERS)


class SessionCoordinator:
    def __init__(self, transport: TransportClient) -> None:
        self._transport = transport
        self.state = SessionState.NO_CREDENTIAL
        self.steps: list[AuthStep] = []

    def _require_keypair(self, keypair: Keypair | None) -> Keypair:
        self.state = SessionState.NO_CREDENTIAL
        self.steps = []
        if keypair is None:
            self.state = SessionState.SESSION_FAILED
            raise NoCredentialError("no keypair available; generate or import one first")
        self.state = SessionState.CREDENTIAL_HELD
        return keypair

    def _signin(self, keypair: Keypair) -> AuthStep:
        logger.debug("attempting signin for %s", keypair.public_identity)
        try:
            self._transport.signin(keypair)
        except TransportError as exc:
            logger.info("signin failed, this might be normal if not registered yet")
            logger.debug("signin error: %s", exc)
            return AuthStep.SIGNIN_REJECTED
        return AuthStep.SIGNED_IN

    def _signup(self, keypair: Keypair, homeserver: str, signup_token: str | None) -> AuthStep:
        logger.debug(
            "attempting signup with %s, token %s",
            homeserver,
            "provided" if signup_token else "not provided",
        )
        try:
            self._transport.signup(keypair, homeserver, signup_token)
        except TransportError as exc:
            self.state = SessionState.SESSION_FAILED
            if signup_token is None and is_invite_token_error(exc):
                raise InviteTokenRequiredError("signup requires an invite token") from exc
            raise SignupError(f"signup failed: {exc}") from exc
        return AuthStep.SIGNED_UP

    def _record(self, step: AuthStep) -> AuthStep:
        self.steps.append(step)
        return step

    def _confirm(self, keypair: Keypair) -> SessionInfo:
        identity = keypair.public_identity
        logger.debug("checking session for %s", identity)
        try:
            session = self._transport.session(identity)
        except TransportError:
            self.state = SessionState.SESSION_FAILED
            raise
        if session is None:
            self.state = SessionState.SESSION_FAILED
            raise SessionNotEstablishedError("session not created after authentication")
        self.state = SessionState.SESSION_ESTABLISHED
        return session

    def ensure_session(
        self,
        keypair: Keypair | None,
        homeserver: str,
        *,
        signup_token: str | None = None,
    ) -> SessionInfo:
        keypair = self._require_keypair(keypair)
        self.state = SessionState.SESSION_PENDING

        step = self._record(self._signin(keypair))
        if step is AuthStep.SIGNIN_REJECTED:
            self._record(self._signup(keypair, homeserver, signup_token))

        return self._confirm(keypair)

    def register(
        self,
        keypair: Keypair | None,
        homeserver: str,
        *,
        signup_token: str | None = None,
    ) -> SessionInfo:
        keypair = self._require_keypair(keypair)
        self.state = SessionState.SESSION_PENDING
        self._record(self._signup(keypair, homeserver, signup_token))
        return self._confirm(keypair)
