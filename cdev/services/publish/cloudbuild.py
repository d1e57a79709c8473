"""Remote build handoff over the socket.io build relay.

Channel states:

    disconnected -> connecting -> connected -> building
        -> {succeeded | failed | timed_out} -> disconnected

The connect timer and the relay's connect acknowledgement race each other. A
one-shot latch decides which one wins; the loser is ignored. Teardown goes
through a second latch so the channel is closed exactly once, whichever path
(timeout, failure action, relay error, caller) gets there first.

A build that ends with the relay closing the session without a failure action
counts as succeeded. Any other loss of the connection (transport error, closed
socket) fails the build as a network error.
"""

from __future__ import annotations

import shlex
import threading
import urllib.parse
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

import socketio

from cdev.core.config import RelayConfig
from cdev.core.result import Err, Ok, Result
from cdev.core.structured import get_path
from cdev.output.console import ConsoleProtocol, Style
from cdev.platform.http import HttpClient
from cdev.services.publish.config import BUILD_FAILED_ACTIONS, COMMAND_WHITELIST
from cdev.services.publish.errors import PublishError
from cdev.services.publish.prompts import Choice, Prompter
from cdev.services.publish.relay_api import list_published_files

EventHandler = Callable[..., None]

# Disconnect reason passed when the relay itself ends the session.
RELAY_CLOSED = socketio.Client.reason.SERVER_DISCONNECT


class ChannelState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    BUILDING = "building"


class SessionState(StrEnum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(slots=True)
class BuildSession:
    session_id: str | None = None
    state: SessionState = SessionState.PENDING
    failed_action: str | None = None


@dataclass(frozen=True, slots=True)
class BuildRequest:
    """What the relay needs to check out and build the dev branch."""

    repo: str
    name: str
    branch: str
    version: str
    build_cmd: str
    production: bool
    publish_target: str | None = None

    def query(self) -> dict[str, str]:
        return {
            "repo": self.repo,
            "name": self.name,
            "branch": self.branch,
            "version": self.version,
            "buildCmd": self.build_cmd,
            "prod": "true" if self.production else "false",
            "gitPublish": self.publish_target or "",
        }


class BuildChannel(Protocol):
    """Event channel to the relay.

    The ``disconnect`` handler receives the reason the session ended;
    ``RELAY_CLOSED`` means the relay closed it.
    """

    @property
    def sid(self) -> str | None: ...

    def on(self, event: str, handler: EventHandler) -> None: ...

    def open(self, url: str, query: Mapping[str, str]) -> None:
        """Start connecting; must not block until the connection is up."""
        ...

    def emit(self, event: str, data: object | None = None) -> None: ...

    def close(self) -> None: ...


class SocketIOChannel:
    """``BuildChannel`` backed by a python-socketio client.

    ``open`` connects on a background thread; a failed attempt is reported
    through the ``connect_error`` handler. A ``close`` that arrives while that
    thread is still connecting is applied once the connection is up.
    """

    def __init__(self, *, wait_timeout: float = 10.0) -> None:
        self._client = socketio.Client(reconnection=False)
        self._wait_timeout = wait_timeout
        self._handlers: dict[str, EventHandler] = {}
        self._closed = threading.Event()

    @property
    def sid(self) -> str | None:
        return self._client.sid

    def on(self, event: str, handler: EventHandler) -> None:
        self._handlers[event] = handler
        self._client.on(event, handler)

    def open(self, url: str, query: Mapping[str, str]) -> None:
        target = f"{url}?{urllib.parse.urlencode(query)}"
        thread = threading.Thread(
            target=self._connect,
            args=(target,),
            name="cdev-relay-connect",
            daemon=True,
        )
        thread.start()

    def emit(self, event: str, data: object | None = None) -> None:
        self._client.emit(event, data)

    def close(self) -> None:
        self._closed.set()
        self._client.disconnect()

    def _connect(self, target: str) -> None:
        try:
            self._client.connect(target, wait_timeout=self._wait_timeout)
        except socketio.exceptions.ConnectionError as e:
            handler = self._handlers.get("connect_error")
            if handler is not None:
                handler(str(e))
            return
        if self._closed.is_set():
            self._client.disconnect()


ChannelFactory = Callable[[RelayConfig], BuildChannel]


def socketio_channel(config: RelayConfig) -> BuildChannel:
    return SocketIOChannel(wait_timeout=config.connect_timeout_seconds * 2)


class _Latch:
    """Lock-guarded one-shot flag: only the first ``fire`` returns True."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._fired = False

    def fire(self) -> bool:
        with self._lock:
            if self._fired:
                return False
            self._fired = True
            return True

    @property
    def fired(self) -> bool:
        with self._lock:
            return self._fired


def parse_message(msg: object) -> tuple[str, str]:
    """``(action, message)`` from ``{"data": {"action", "payload": {"message"}}}``."""
    action = get_path(msg, "data", "action")
    message = get_path(msg, "data", "payload", "message")
    return (
        action if isinstance(action, str) else "",
        message if isinstance(message, str) else "",
    )


def check_build_command(build_cmd: str) -> Result[str, PublishError]:
    """The build command must start with a whitelisted executable."""
    try:
        parts = shlex.split(build_cmd)
    except ValueError as e:
        return Err(
            PublishError(
                kind="command_not_allowed",
                message=f"could not parse build command: {build_cmd}",
                hint=str(e),
            )
        )
    if not parts or parts[0] not in COMMAND_WHITELIST:
        return Err(
            PublishError(
                kind="command_not_allowed",
                message=f"build command not allowed: {build_cmd}",
                hint=f"The command must start with one of: {', '.join(COMMAND_WHITELIST)}",
            )
        )
    return Ok(build_cmd)


def confirm_overwrite(
    *,
    http: HttpClient,
    relay_url: str,
    name: str,
    prompter: Prompter,
    console: ConsoleProtocol,
) -> Result[None, PublishError]:
    """Ask before a production publish replaces existing artifacts."""
    published = list_published_files(http, relay_url, name, production=True)
    if isinstance(published, Err):
        return published
    if not published.value:
        return Ok(None)

    console.warning(f"{name} already has {len(published.value)} published file(s)")
    overwrite = prompter.select(
        f"{name} is already published. Overwrite it?",
        [Choice(False, "abort the publish"), Choice(True, "overwrite")],
        default=False,
    )
    if not overwrite:
        return Err(
            PublishError(
                kind="publish_aborted",
                message=f"publish of {name} aborted",
                hint="Existing artifacts were left untouched.",
            )
        )
    return Ok(None)


class RemoteBuildHandoff:
    def __init__(
        self,
        *,
        request: BuildRequest,
        config: RelayConfig,
        console: ConsoleProtocol,
        channel: BuildChannel,
    ) -> None:
        self._request = request
        self._config = config
        self._console = console
        self._channel = channel

        self.session = BuildSession()
        self.state = ChannelState.DISCONNECTED

        self._timer: threading.Timer | None = None
        self._connect_latch = _Latch()
        self._connect_done = threading.Event()
        self._connect_outcome: Result[BuildSession, PublishError] | None = None

        self._finish_latch = _Latch()
        self._finished = threading.Event()
        self._error: PublishError | None = None

        self._close_latch = _Latch()

    # -- connect ---------------------------------------------------------

    def connect(self) -> Result[BuildSession, PublishError]:
        """Open the relay session; Err(connect_timeout) when the relay is silent."""
        if self.state != ChannelState.DISCONNECTED or self._close_latch.fired:
            return Err(PublishError(kind="repo_state", message="build session already used"))

        self.state = ChannelState.CONNECTING
        self._channel.on("connect", self._on_connect)
        self._channel.on("connect_error", self._on_connect_error)
        self._channel.on("disconnect", self._on_disconnect)
        self._channel.on("error", self._on_error)
        self._channel.on("build", self._on_progress)
        self._channel.on("building", self._on_building)

        timeout = self._config.connect_timeout_seconds
        self._console.debug(f"relay connect timeout: {timeout:g}s")
        self._timer = threading.Timer(timeout, self._on_connect_timeout)
        self._timer.daemon = True
        self._timer.start()

        self._channel.open(self._config.url, self._request.query())
        self._connect_done.wait()
        assert self._connect_outcome is not None
        return self._connect_outcome

    def _on_connect(self, *args: object) -> None:
        self._cancel_timer()
        if not self._connect_latch.fire():
            if self.state not in (ChannelState.CONNECTED, ChannelState.BUILDING):
                # late ack after a timeout or error: the connection is unwanted
                self._channel.close()
            return
        sid = self._channel.sid
        self.session.session_id = sid
        self.state = ChannelState.CONNECTED
        if sid:
            self._channel.on(sid, self._on_progress)
        self._console.success(f"build session created: {sid}")
        self._resolve_connect(Ok(self.session))

    def _on_connect_timeout(self) -> None:
        if not self._connect_latch.fire():
            return
        self._console.error("build relay did not answer in time")
        self.disconnect()
        self._resolve_connect(
            Err(
                PublishError(
                    kind="connect_timeout",
                    message=(
                        f"could not connect to {self._config.url} within "
                        f"{self._config.connect_timeout_seconds:g}s"
                    ),
                    hint="Check the relay URL in config.toml and your network connection.",
                )
            )
        )

    def _on_connect_error(self, *args: object) -> None:
        self._cancel_timer()
        if not self._connect_latch.fire():
            return
        self.disconnect()
        detail = " ".join(str(a) for a in args) or None
        self._resolve_connect(
            Err(
                PublishError(
                    kind="network",
                    message=f"could not connect to {self._config.url}",
                    hint=detail,
                )
            )
        )

    def _resolve_connect(self, outcome: Result[BuildSession, PublishError]) -> None:
        self._connect_outcome = outcome
        self._connect_done.set()

    # -- build -----------------------------------------------------------

    def build(self) -> Result[bool, PublishError]:
        """Start the build and wait for its outcome.

        Ok(True) on success, Ok(False) when the relay reports a failure action
        (see ``session.failed_action``). A session the relay already ended
        before the build started reports how it ended.
        """
        timeout = self._config.build_timeout_seconds
        if not self._finished.is_set():
            if self.state != ChannelState.CONNECTED:
                return Err(PublishError(kind="repo_state", message="build relay is not connected"))

            self.state = ChannelState.BUILDING
            self._channel.emit("build")

            if not self._finished.wait(timeout) and self._finish(SessionState.TIMED_OUT):
                self._console.error(f"build did not finish within {timeout:g}s")

        self.disconnect()
        if self._error is not None:
            return Err(self._error)
        if self.session.state == SessionState.TIMED_OUT:
            return Err(
                PublishError(
                    kind="build_timeout",
                    message=f"build did not finish within {timeout:g}s",
                    hint="Raise build_timeout_seconds in config.toml for long builds.",
                )
            )
        return Ok(self.session.state == SessionState.SUCCEEDED)

    def _on_progress(self, msg: object = None, *args: object) -> None:
        action, message = parse_message(msg)
        if action in BUILD_FAILED_ACTIONS:
            self._console.error(f"{action}: {message}")
            if self._finish(SessionState.FAILED, action=action):
                self.disconnect()
            return
        self._console.success(f"{action}: {message}" if message else action)

    def _on_building(self, msg: object = None, *args: object) -> None:
        self._console.print(str(msg), Style.DIM)

    def _on_error(self, *args: object) -> None:
        detail = " ".join(str(a) for a in args) or None
        if not self._connect_latch.fired:
            self._on_connect_error(*args)
            return
        error = PublishError(kind="network", message="build relay error", hint=detail)
        if self._finish(SessionState.FAILED, error=error):
            self._console.error("build relay error")
        self.disconnect()

    def _on_disconnect(self, reason: object = None, *args: object) -> None:
        if not self._connect_latch.fired:
            self._on_connect_error("relay closed the connection")
            return
        if self.state == ChannelState.DISCONNECTED:
            # our own teardown
            return

        self._console.info("build session closed")
        if self.state == ChannelState.BUILDING and reason == RELAY_CLOSED:
            self._finish(SessionState.SUCCEEDED)
        else:
            message = (
                "lost the connection to the build relay"
                if self.state == ChannelState.BUILDING
                else "build relay closed the session before the build started"
            )
            error = PublishError(
                kind="network", message=message, hint=str(reason) if reason else None
            )
            if self._finish(SessionState.FAILED, error=error):
                self._console.error(message)
        self.disconnect()

    def _finish(
        self,
        state: SessionState,
        *,
        action: str | None = None,
        error: PublishError | None = None,
    ) -> bool:
        if not self._finish_latch.fire():
            return False
        self.session.state = state
        self.session.failed_action = action
        self._error = error
        self._finished.set()
        return True

    # -- teardown --------------------------------------------------------

    def disconnect(self) -> None:
        """Close the channel. Safe to call any number of times."""
        self._cancel_timer()
        if not self._close_latch.fire():
            return
        self.state = ChannelState.DISCONNECTED
        self._channel.close()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
