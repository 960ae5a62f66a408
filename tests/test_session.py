from __future__ import annotations

import pytest

from pak.crypto.keypair import Keypair
from pak.errors import (
    HomeserverRequestError,
    HomeserverUnavailableError,
    InviteTokenRequiredError,
    NoCredentialError,
    SessionNotEstablishedError,
    SignupError,
)
from pak.session import AuthStep, SessionCoordinator, SessionState

HOMESERVER = "8pinxxgqs41n4aididenw5apqp1urfmzdztr8jt4abrkdn435ewo"


def test_registered_identity_signs_in_without_signup(fake_transport_cls) -> None:
    transport = fake_transport_cls(registered=True)
    keypair = Keypair.random()

    session = SessionCoordinator(transport).ensure_session(keypair, HOMESERVER)

    assert session.identity == keypair.public_identity
    assert transport.call_names() == ["signin", "session"]


def test_unregistered_identity_falls_back_to_signup(fake_transport_cls) -> None:
    transport = fake_transport_cls(registered=False)
    keypair = Keypair.random()
    coordinator = SessionCoordinator(transport)

    session = coordinator.ensure_session(keypair, HOMESERVER)

    assert session.identity == keypair.public_identity
    assert transport.call_names() == ["signin", "signup", "session"]
    assert transport.calls[1] == ("signup", keypair.public_identity, HOMESERVER, None)
    assert coordinator.steps == [AuthStep.SIGNIN_REJECTED, AuthStep.SIGNED_UP]
    assert coordinator.state is SessionState.SESSION_ESTABLISHED


def test_signup_is_never_called_before_signin(fake_transport_cls) -> None:
    transport = fake_transport_cls(registered=False)
    SessionCoordinator(transport).ensure_session(Keypair.random(), HOMESERVER)
    names = transport.call_names()
    assert names.index("signin") < names.index("signup")


def test_signup_token_is_forwarded(fake_transport_cls) -> None:
    transport = fake_transport_cls(registered=False)
    keypair = Keypair.random()
    SessionCoordinator(transport).ensure_session(keypair, HOMESERVER, signup_token="INVITE-1")
    assert transport.calls[1][3] == "INVITE-1"


def test_both_failures_are_terminal_and_skip_session_check(fake_transport_cls) -> None:
    transport = fake_transport_cls(
        registered=False,
        signup_error=HomeserverRequestError("signup failed: 500 boom", status_code=500),
    )
    coordinator = SessionCoordinator(transport)

    with pytest.raises(SignupError) as excinfo:
        coordinator.ensure_session(Keypair.random(), HOMESERVER)

    assert not isinstance(excinfo.value, InviteTokenRequiredError)
    assert "session" not in transport.call_names()
    assert coordinator.state is SessionState.SESSION_FAILED


def test_missing_invite_token_is_distinguished(fake_transport_cls) -> None:
    transport = fake_transport_cls(
        registered=False,
        signup_error=HomeserverRequestError(
            "signup failed: 401 signup_token required",
            status_code=401,
        ),
    )
    with pytest.raises(InviteTokenRequiredError):
        SessionCoordinator(transport).ensure_session(Keypair.random(), HOMESERVER)
    assert "session" not in transport.call_names()


def test_rejected_invite_token_is_generic_signup_error(fake_transport_cls) -> None:
    transport = fake_transport_cls(
        registered=False,
        signup_error=HomeserverRequestError("signup failed: 401 invalid invite", status_code=401),
    )
    with pytest.raises(SignupError) as excinfo:
        SessionCoordinator(transport).ensure_session(
            Keypair.random(),
            HOMESERVER,
            signup_token="expired",
        )
    assert not isinstance(excinfo.value, InviteTokenRequiredError)


def test_reported_success_without_session_fails(fake_transport_cls) -> None:
    transport = fake_transport_cls(registered=True, session_after_auth=False)
    coordinator = SessionCoordinator(transport)
    with pytest.raises(SessionNotEstablishedError):
        coordinator.ensure_session(Keypair.random(), HOMESERVER)
    assert coordinator.state is SessionState.SESSION_FAILED


def test_missing_keypair_fails_without_transport_calls(fake_transport_cls) -> None:
    transport = fake_transport_cls()
    with pytest.raises(NoCredentialError):
        SessionCoordinator(transport).ensure_session(None, HOMESERVER)
    assert transport.calls == []


def test_unreachable_homeserver_on_signin_is_absorbed(fake_transport_cls) -> None:
    transport = fake_transport_cls(registered=True)
    keypair = Keypair.random()

    def unreachable(_keypair) -> None:
        transport.calls.append(("signin", _keypair.public_identity))
        raise HomeserverUnavailableError("homeserver unreachable")

    transport.signin = unreachable
    session = SessionCoordinator(transport).ensure_session(keypair, HOMESERVER)
    assert session.identity == keypair.public_identity
    assert transport.call_names() == ["signin", "signup", "session"]


def test_register_skips_signin(fake_transport_cls) -> None:
    transport = fake_transport_cls(registered=False)
    keypair = Keypair.random()
    session = SessionCoordinator(transport).register(keypair, HOMESERVER, signup_token="tok")
    assert session.identity == keypair.public_identity
    assert transport.call_names() == ["signup", "session"]


def test_fresh_keypair_scenario(fake_transport_cls) -> None:
    from pak.config import PakConfig
    from pak.credentials import CredentialManager

    manager = CredentialManager()
    manager.restore_from(PakConfig())
    keypair = manager.generate()
    transport = fake_transport_cls(registered=False)

    session = SessionCoordinator(transport).ensure_session(manager.keypair, HOMESERVER)

    assert session.identity == keypair.public_identity == manager.public_identity()


def test_reused_coordinator_records_only_the_latest_run(fake_transport_cls) -> None:
    transport = fake_transport_cls(registered=False)
    keypair = Keypair.random()
    coordinator = SessionCoordinator(transport)

    coordinator.ensure_session(keypair, HOMESERVER)
    coordinator.ensure_session(keypair, HOMESERVER)

    assert coordinator.steps == [AuthStep.SIGNED_IN]
    assert coordinator.state is SessionState.SESSION_ESTABLISHED

    with pytest.raises(NoCredentialError):
        coordinator.ensure_session(None, HOMESERVER)
    assert coordinator.steps == []
    assert coordinator.state is SessionState.SESSION_FAILED
