"""Command-line interface for pak."""

from __future__ import annotations

import argparse
import contextlib
import json
import logging
import re
import signal
import sys
import threading
from dataclasses import dataclass, field
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from pathlib import Path
from typing import Iterator, Sequence, TextIO

from pak.config import (
    KNOWN_HOMESERVERS,
    PakConfig,
    load_config,
    resolve_config_path,
    save_config,
    to_bool,
)
from pak.credentials import CredentialManager, format_secret_key
from pak.crypto.z32 import validate_identity
from pak.errors import (
    HomeserverRequestError,
    HomeserverUnavailableError,
    InvalidKeyMaterialError,
    InviteTokenRequiredError,
    NexusRequestError,
    NexusUnavailableError,
    NoCredentialError,
    PakError,
)
from pak.nexus import NexusClient
from pak.paths import SOCIAL_ACTIONS, build_address, build_raw_request, build_social_request
from pak.session import SessionCoordinator
from pak.transport.base import SessionInfo, TransportClient, TransportResponse
from pak.transport.client import NETWORK_DEFAULTS, HomeserverClient
from pak.transport.pkarr import PkarrRelayClient

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

NO_KEYPAIR_MESSAGE = "no keypair available. Run: pak auth --generate or pak auth --import <bytes>"
INVITE_TOKEN_HINT = "Use: pak auth --signup --token YOUR_INVITE_TOKEN"
CONNECTIVITY_HINT = "hint: check that the homeserver is accessible and your network connection"

_SENSITIVE_FIELDS = (
    "signup_token",
    "token",
    "secret",
    "secret_key",
    "keypair",
)


def _sdk_version() -> str:
    try:
        return pkg_version("pak-cli")
    except PackageNotFoundError:
        return "0.0.0+local"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pak",
        description="Pak - Swiss Army Knife for the Pubky ecosystem",
    )
    parser.add_argument("--version", action="version", version=f"pak {_sdk_version()}")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config JSON (default: $PAK_CONFIG or ~/.pak-config.json)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    config = sub.add_parser("config", help="Manage configuration")
    config.add_argument("-s", "--show", action="store_true", help="Show current configuration")
    config.add_argument("-r", "--reset", action="store_true", help="Reset to defaults")
    config.add_argument("--homeserver", default=None, help="Set homeserver public key")
    config.add_argument("--homeserver-url", default=None, help="Set homeserver HTTP endpoint")
    config.add_argument("--nexus", default=None, help="Set Nexus endpoint URL")
    config.add_argument(
        "--testnet",
        nargs="?",
        const="true",
        default=None,
        help="Enable/disable testnet (true/false)",
    )
    config.add_argument("--relay", default=None, help="Set HTTP relay URL")
    config.add_argument(
        "--list-homeservers",
        action="store_true",
        help="List known working homeservers",
    )

    auth = sub.add_parser("auth", help="Authentication management")
    auth.add_argument("-g", "--generate", action="store_true", help="Generate new keypair")
    auth.add_argument(
        "-i",
        "--import",
        dest="import_key",
        default=None,
        metavar="SECRETKEY",
        help="Import keypair from secret key (comma-separated bytes)",
    )
    auth.add_argument("-l", "--login", action="store_true", help="Sign in with current keypair")
    auth.add_argument("-u", "--signup", action="store_true", help="Sign up with current keypair")
    auth.add_argument("-t", "--token", default=None, help="Signup token (invite code)")
    auth.add_argument("-s", "--status", action="store_true", help="Show authentication status")
    auth.add_argument("--export", action="store_true", help="Export current public key")
    auth.add_argument("--json", action="store_true")

    homeserver = sub.add_parser("homeserver", aliases=["hs"], help="Homeserver operations")
    homeserver.add_argument("method", help="HTTP method (GET, PUT, DELETE)")
    homeserver.add_argument("path", help="Path on homeserver")
    homeserver.add_argument("-d", "--data", default=None, help="Request body data (for PUT)")

    files = sub.add_parser("files", aliases=["ls"], help="File operations")
    files.add_argument("path", nargs="?", default="/pub/", help="Path to list")

    social = sub.add_parser("social", help="Social operations")
    social.add_argument("action", help=f"Action: {', '.join(SOCIAL_ACTIONS)}")
    social.add_argument("target", help="Target user/content")
    social.add_argument("-l", "--label", default=None, help="Tag label (for tag action)")

    nexus = sub.add_parser("nexus", help="Nexus API operations")
    nexus.add_argument("endpoint", help="API endpoint (e.g. /v0/user/ID, /v0/stream/posts)")
    nexus.add_argument("-p", "--params", default=None, help="Query parameters (key=value&key2=value2)")

    probe = sub.add_parser("test", help="Test connectivity")
    probe.add_argument("--homeserver", action="store_true", help="Test homeserver connectivity")
    probe.add_argument("-n", "--nexus", action="store_true", help="Test Nexus API connectivity")
    probe.add_argument("-a", "--all", action="store_true", help="Test all connections")

    sub.add_parser("republish", help="Republish homeserver record (alternative to signup)")

    return parser


def _configure_logging(*, debug: bool, stream: TextIO) -> None:
    package_logger = logging.getLogger("pak")
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if debug else logging.WARNING)
    logger.debug("debug mode enabled")


def _sanitize_error_text(value: str) -> str:
    redacted = value
    for name in _SENSITIVE_FIELDS:
        redacted = re.sub(
            rf"(?i)({name}\s*[=:]\s*)([^,\s&]+)",
            r"\1[REDACTED]",
            redacted,
        )
    return redacted


def _print_error(stderr, prefix: str, message: str, *, code: int = EXIT_FAILURE) -> int:
    print(f"{prefix}: {_sanitize_error_text(message)}", file=stderr)
    return code


def _print_json(payload: object, stdout) -> None:
    print(json.dumps(payload, indent=2), file=stdout)


@dataclass
class InvocationContext:
    config_path: Path
    config: PakConfig
    credentials: CredentialManager
    stdout: TextIO
    stderr: TextIO
    _transport: TransportClient | None = field(default=None, repr=False)

    @classmethod
    def load(cls, config_path: str | None, *, stdout: TextIO, stderr: TextIO) -> "InvocationContext":
        path = resolve_config_path(config_path)
        config = load_config(path)
        credentials = CredentialManager()
        credentials.restore_from(config)
        return cls(
            config_path=path,
            config=config,
            credentials=credentials,
            stdout=stdout,
            stderr=stderr,
        )

    def transport(self) -> TransportClient:
        if self._transport is None:
            logger.debug("initializing homeserver client, testnet: %s", self.config.testnet)
            self._transport = HomeserverClient(
                network=self.config.network_mode,
                homeserver_url=self.config.homeserver_url,
                pkarr_relay=self.config.pkarr_relay,
                relay_url=self.config.http_relay,
            )
        return self._transport

    def pkarr_relay_url(self) -> str:
        return self.config.pkarr_relay or NETWORK_DEFAULTS[self.config.network_mode]["pkarr_relay"]

    def persist(self, **changes) -> bool:
        self.config = self.config.with_updates(**changes)
        return save_config(self.config, self.config_path)

    def mark_authenticated(self, value: bool) -> None:
        if self.config.authenticated == value:
            return
        self.persist(authenticated=value)

    def close(self) -> None:
        if self._transport is None:
            return
        logger.debug("cleaning up client...")
        try:
            self._transport.close()
        except Exception as exc:
            logger.debug("cleanup error: %s", exc)
        self._transport = None


def _require_keypair(ctx: InvocationContext):
    keypair = ctx.credentials.keypair
    if keypair is None:
        raise NoCredentialError(NO_KEYPAIR_MESSAGE)
    return keypair


def _establish_session(ctx: InvocationContext) -> SessionInfo:
    coordinator = SessionCoordinator(ctx.transport())
    try:
        session = coordinator.ensure_session(
            ctx.credentials.keypair,
            ctx.config.homeserver,
        )
    except PakError:
        ctx.mark_authenticated(False)
        raise
    logger.debug("session active for %s (steps: %s)", session.identity, coordinator.steps)
    return session


def _report_error(ctx: InvocationContext, prefix: str, exc: PakError) -> int:
    if isinstance(exc, NoCredentialError):
        return _print_error(ctx.stderr, prefix, NO_KEYPAIR_MESSAGE)
    code = _print_error(ctx.stderr, prefix, str(exc))
    if isinstance(exc, InviteTokenRequiredError):
        print(INVITE_TOKEN_HINT, file=ctx.stderr)
    elif isinstance(exc, HomeserverUnavailableError):
        print(CONNECTIVITY_HINT, file=ctx.stderr)
    return code


def _print_response_body(response: TransportResponse, stdout) -> None:
    if not response.body:
        return
    try:
        _print_json(response.json(), stdout)
    except ValueError:
        print(response.text, file=stdout)


def _run_config(ctx: InvocationContext, args) -> int:
    stdout = ctx.stdout
    if args.list_homeservers:
        print("known homeservers:", file=stdout)
        for network, mode in (("testnet", "test"), ("mainnet", "main")):
            print(f"{network}:", file=stdout)
            for identity, note in KNOWN_HOMESERVERS[mode]:
                print(f"  {identity} ({note})", file=stdout)
        print("try a different homeserver if the current one is unresponsive", file=stdout)
        return EXIT_SUCCESS

    if args.show:
        _print_json(ctx.config.redacted(), stdout)
        return EXIT_SUCCESS

    if args.reset:
        ctx.config = PakConfig(keypair=ctx.config.keypair)
        if not save_config(ctx.config, ctx.config_path):
            return _print_error(ctx.stderr, "config error", f"could not write {ctx.config_path}")
        print("configuration reset to defaults", file=stdout)
        if ctx.config.keypair is not None:
            print("keypair kept; run `pak auth --generate` to replace it", file=stdout)
        return EXIT_SUCCESS

    changes: dict[str, object] = {}
    if args.homeserver:
        if not validate_identity(args.homeserver):
            return _print_error(
                ctx.stderr,
                "config error",
                "homeserver must be a 52-character z-base-32 public key",
            )
        changes["homeserver"] = args.homeserver
    if args.homeserver_url:
        changes["homeserver_url"] = args.homeserver_url
    if args.nexus:
        changes["nexus_endpoint"] = args.nexus
    if args.testnet is not None:
        try:
            changes["testnet"] = to_bool(args.testnet, "testnet")
        except ValueError as exc:
            return _print_error(ctx.stderr, "config error", str(exc))
    if args.relay:
        changes["http_relay"] = args.relay

    if not changes:
        print("current configuration:", file=stdout)
        _print_json(ctx.config.redacted(), stdout)
        return EXIT_SUCCESS

    if not ctx.persist(**changes):
        return _print_error(ctx.stderr, "config error", f"could not write {ctx.config_path}")
    print("configuration saved", file=stdout)
    return EXIT_SUCCESS


def _run_auth_status(ctx: InvocationContext, args) -> int:
    keypair = ctx.credentials.keypair
    payload = {
        "authenticated": ctx.config.authenticated,
        "has_keypair": keypair is not None,
        "public_key": keypair.public_identity if keypair else None,
        "homeserver": ctx.config.homeserver,
        "network": ctx.config.network_mode,
    }
    if args.json:
        print(json.dumps(payload, sort_keys=True), file=ctx.stdout)
        return EXIT_SUCCESS

    print("authentication status:", file=ctx.stdout)
    print(f"authenticated: {'yes' if payload['authenticated'] else 'no'}", file=ctx.stdout)
    print(f"has_keypair: {'yes' if payload['has_keypair'] else 'no'}", file=ctx.stdout)
    if keypair is not None:
        print(f"public_key: {payload['public_key']}", file=ctx.stdout)
    print(f"homeserver: {payload['homeserver']}", file=ctx.stdout)
    return EXIT_SUCCESS


def _run_auth(ctx: InvocationContext, args) -> int:
    stdout = ctx.stdout
    if args.generate:
        keypair = ctx.credentials.generate()
        ctx.persist(keypair=ctx.credentials.export_material(), authenticated=False)
        if args.json:
            payload = {
                "public_key": keypair.public_identity,
                "secret_key": format_secret_key(keypair),
            }
            print(json.dumps(payload, sort_keys=True), file=stdout)
            return EXIT_SUCCESS
        print("generated new keypair:", file=stdout)
        print(f"public_key: {keypair.public_identity}", file=stdout)
        print(f"secret_key: {format_secret_key(keypair)}", file=stdout)
        print("SAVE THE SECRET KEY SECURELY!", file=stdout)
        return EXIT_SUCCESS

    if args.import_key is not None:
        try:
            keypair = ctx.credentials.import_from_text(args.import_key)
        except InvalidKeyMaterialError as exc:
            return _print_error(ctx.stderr, "keypair import failed", str(exc))
        ctx.persist(keypair=ctx.credentials.export_material(), authenticated=False)
        print("keypair imported successfully", file=stdout)
        print(f"public_key: {keypair.public_identity}", file=stdout)
        return EXIT_SUCCESS

    if args.login or args.signup:
        coordinator = SessionCoordinator(ctx.transport())
        logger.debug("homeserver public key: %s", ctx.config.homeserver)
        try:
            if args.login:
                session = coordinator.ensure_session(
                    ctx.credentials.keypair,
                    ctx.config.homeserver,
                    signup_token=args.token,
                )
            else:
                session = coordinator.register(
                    ctx.credentials.keypair,
                    ctx.config.homeserver,
                    signup_token=args.token,
                )
        except PakError as exc:
            ctx.mark_authenticated(False)
            return _report_error(ctx, "authentication failed", exc)
        ctx.mark_authenticated(True)
        print(f"session established for: {session.identity}", file=stdout)
        return EXIT_SUCCESS

    if args.export:
        if ctx.credentials.keypair is None:
            return _print_error(ctx.stderr, "auth error", NO_KEYPAIR_MESSAGE)
        print(f"public_key: {ctx.credentials.public_identity()}", file=stdout)
        return EXIT_SUCCESS

    return _run_auth_status(ctx, args)


def _run_homeserver(ctx: InvocationContext, args) -> int:
    try:
        keypair = _require_keypair(ctx)
        request = build_raw_request(keypair.public_identity, args.method, args.path, args.data)
        _establish_session(ctx)
        print(f"{request.method} {request.address}", file=ctx.stdout)
        response = ctx.transport().fetch(request.address, method=request.method, body=request.body)
    except PakError as exc:
        return _report_error(ctx, "homeserver operation failed", exc)

    if not response.ok:
        logger.debug("response headers: %s", response.headers)
        return _print_error(ctx.stderr, f"error {response.status_code}", response.text)

    ctx.mark_authenticated(True)
    print(f"success ({response.status_code}):", file=ctx.stdout)
    _print_response_body(response, ctx.stdout)
    return EXIT_SUCCESS


def _run_files(ctx: InvocationContext, args) -> int:
    try:
        keypair = _require_keypair(ctx)
        address = build_address(keypair.public_identity, args.path)
        _establish_session(ctx)
        print(f"listing: {address}", file=ctx.stdout)
        entries = ctx.transport().list(address)
    except PakError as exc:
        code = _report_error(ctx, "file listing failed", exc)
        if isinstance(exc, HomeserverRequestError) and exc.status_code == 404:
            print("directory may not exist or is empty", file=ctx.stderr)
        return code

    ctx.mark_authenticated(True)
    if not entries:
        print("directory is empty", file=ctx.stdout)
        return EXIT_SUCCESS
    print(f"found {len(entries)} items:", file=ctx.stdout)
    for entry in entries:
        kind = "dir " if entry.endswith("/") else "file"
        print(f"{kind} {entry}", file=ctx.stdout)
    return EXIT_SUCCESS


def _run_social(ctx: InvocationContext, args) -> int:
    try:
        keypair = _require_keypair(ctx)
        request = build_social_request(
            keypair.public_identity,
            args.action,
            args.target,
            label=args.label,
        )
        logger.debug("executing social operation: %s on target: %s", args.action, args.target)
        _establish_session(ctx)
        print(f"{request.method} {request.address}", file=ctx.stdout)
        response = ctx.transport().fetch(request.address, method=request.method, body=request.body)
    except PakError as exc:
        return _report_error(ctx, "social operation failed", exc)

    if not response.ok:
        logger.debug("response headers: %s", response.headers)
        return _print_error(
            ctx.stderr,
            f"{args.action} failed ({response.status_code})",
            response.text,
        )

    ctx.mark_authenticated(True)
    print(f"{args.action} successful", file=ctx.stdout)
    if response.body:
        logger.debug("response: %s", response.text)
    return EXIT_SUCCESS


def _run_nexus(ctx: InvocationContext, args) -> int:
    client = NexusClient(base_url=ctx.config.nexus_endpoint)
    try:
        print(f"GET {client.url_for(args.endpoint, args.params)}", file=ctx.stdout)
        data = client.get(args.endpoint, args.params)
    except NexusRequestError as exc:
        body = exc.body if isinstance(exc.body, str) else json.dumps(exc.body)
        return _print_error(ctx.stderr, f"error {exc.status_code}", body)
    except NexusUnavailableError as exc:
        return _print_error(ctx.stderr, "nexus query failed", str(exc))
    finally:
        client.close()

    print("success:", file=ctx.stdout)
    _print_json(data, ctx.stdout)
    return EXIT_SUCCESS


def _probe_homeserver(ctx: InvocationContext) -> bool:
    print("testing homeserver connectivity...", file=ctx.stdout)
    relay = PkarrRelayClient(ctx.pkarr_relay_url())
    try:
        record = relay.resolve(ctx.config.homeserver)
    except (PakError, ValueError) as exc:
        _print_error(ctx.stderr, "homeserver test failed", str(exc))
        return False
    finally:
        relay.close()
    if record is None:
        _print_error(ctx.stderr, "homeserver test failed", "no pkarr record found")
        return False
    if not record.verify():
        _print_error(ctx.stderr, "homeserver test failed", "pkarr record signature is invalid")
        return False
    print("ok: homeserver pkarr record found", file=ctx.stdout)
    return True


def _probe_nexus(ctx: InvocationContext) -> bool:
    print("testing nexus api connectivity...", file=ctx.stdout)
    client = NexusClient(base_url=ctx.config.nexus_endpoint)
    try:
        data = client.get("/v0/stream/posts", "limit=1")
    except NexusUnavailableError as exc:
        _print_error(ctx.stderr, "nexus api test failed", str(exc))
        return False
    finally:
        client.close()
    print("ok: nexus api accessible", file=ctx.stdout)
    sample = data[:1] if isinstance(data, list) else data
    print("sample data:", file=ctx.stdout)
    _print_json(sample, ctx.stdout)
    return True


def _run_test(ctx: InvocationContext, args) -> int:
    if not (args.homeserver or args.nexus or args.all):
        return _print_error(ctx.stderr, "test", "specify --homeserver, --nexus, or --all")

    passed = True
    if args.homeserver or args.all:
        passed = _probe_homeserver(ctx) and passed
    if args.nexus or args.all:
        passed = _probe_nexus(ctx) and passed
    return EXIT_SUCCESS if passed else EXIT_FAILURE


def _run_republish(ctx: InvocationContext, args) -> int:  # noqa: ARG001
    try:
        keypair = _require_keypair(ctx)
        logger.debug("attempting to republish homeserver record...")
        ctx.transport().republish_homeserver(keypair, ctx.config.homeserver)
        print("homeserver record republished successfully", file=ctx.stdout)
        session = ctx.transport().session(keypair.public_identity)
    except PakError as exc:
        return _report_error(ctx, "republish failed", exc)

    if session is not None:
        ctx.mark_authenticated(True)
        print(f"session established for: {session.identity}", file=ctx.stdout)
    return EXIT_SUCCESS


_COMMANDS = {
    "config": _run_config,
    "auth": _run_auth,
    "homeserver": _run_homeserver,
    "hs": _run_homeserver,
    "files": _run_files,
    "ls": _run_files,
    "social": _run_social,
    "nexus": _run_nexus,
    "test": _run_test,
    "republish": _run_republish,
}


def _raise_interrupt(signum, frame) -> None:  # noqa: ARG001
    raise KeyboardInterrupt


@contextlib.contextmanager
def _sigterm_as_interrupt() -> Iterator[None]:
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    previous = signal.signal(signal.SIGTERM, _raise_interrupt)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


def main(argv: Sequence[str] | None = None, *, stdout=sys.stdout, stderr=sys.stderr) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    _configure_logging(debug=args.debug, stream=stderr)
    ctx = InvocationContext.load(args.config, stdout=stdout, stderr=stderr)

    handler = _COMMANDS.get(args.command)
    if handler is None:
        print("unknown command", file=stderr)
        return EXIT_FAILURE

    try:
        with _sigterm_as_interrupt():
            return handler(ctx, args)
    except KeyboardInterrupt:
        print("\ninterrupted, cleaning up", file=stderr)
        return EXIT_INTERRUPTED
    finally:
        ctx.close()


if __name__ == "__main__":
    raise SystemExit(main())
