"""pak error types."""

from __future__ import annotations


class PakError(RuntimeError):
    """Base pak error."""


class ConfigIOError(PakError):
    """Config document could not be read or written."""


class InvalidKeyMaterialError(PakError):
    """Secret key bytes have the wrong length or encoding."""


class NoKeypairError(PakError):
    """No keypair is held by the credential manager."""


class NoCredentialError(PakError):
    """Operation needs a keypair and none has been generated or imported."""


class SignupError(PakError):
    """Homeserver rejected the signup request."""


class InviteTokenRequiredError(SignupError):
    """Homeserver only accepts signups carrying an invite token."""


class SessionNotEstablishedError(PakError):
    """Signin/signup reported success but no live session exists."""


class InvalidActionError(PakError):
    """Unknown social action."""


class MissingLabelError(PakError):
    """Tag action requested without a label."""


class InvalidMethodError(PakError):
    """Unsupported HTTP method or body for a raw homeserver request."""


class TransportError(PakError):
    """Base class for network failures."""


class HomeserverUnavailableError(TransportError):
    """Homeserver or relay could not be reached."""


class HomeserverRequestError(TransportError):
    """Homeserver returned an HTTP error response."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class NexusUnavailableError(TransportError):
    """Nexus indexing service could not be reached."""


class NexusRequestError(NexusUnavailableError):
    """Nexus returned a structured HTTP error response."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: object | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
