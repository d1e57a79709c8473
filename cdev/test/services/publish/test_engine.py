"""End-to-end publish runs against a local bare repository and a scripted relay."""

from __future__ import annotations

import json
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from cdev.core.config import Config, RelayConfig
from cdev.core.result import Err, Ok
from cdev.output.console import MockConsole
from cdev.platform.http import HttpClient, MockHttpClient
from cdev.services.publish.cloudbuild import RELAY_CLOSED, BuildChannel, EventHandler
from cdev.services.publish.credentials import CredentialKey, MemoryCredentialCache
from cdev.services.publish.engine import PublishEngine
from cdev.services.publish.hosts import GithubClient, HostClient
from cdev.services.publish.model import HostType, PublishOptions, RepoContext, Transport
from cdev.services.publish.prompts import ScriptedPrompter

API = "https://api.github.com"
RELAY = "http://relay.test:7001"


def _git(cwd: Path, *args: str) -> str:
    proc = subprocess.run(["git", *args], cwd=str(cwd), capture_output=True, text=True, check=True)
    return proc.stdout.strip()


class LocalGithubClient(GithubClient):
    """GitHub adapter whose clone URL points at a local bare repository."""

    def __init__(self, http: HttpClient, remote: Path) -> None:
        super().__init__(http)
        self._remote = remote

    def get_remote_url(self, login: str, name: str, transport: Transport, token: str) -> str:
        return str(self._remote)


@dataclass
class ScriptedRelay:
    """Build channel that acknowledges at once and replays ``progress`` on build.

    With ``acknowledge`` off the relay never answers the connection.
    """

    progress: list[dict[str, object]] = field(default_factory=list)
    acknowledge: bool = True
    handlers: dict[str, EventHandler] = field(default_factory=dict)
    queries: list[dict[str, str]] = field(default_factory=list)
    closed: int = 0

    @property
    def sid(self) -> str | None:
        return "sock-1"

    def on(self, event: str, handler: EventHandler) -> None:
        self.handlers[event] = handler

    def open(self, url: str, query: Mapping[str, str]) -> None:
        self.queries.append(dict(query))
        if self.acknowledge:
            self.handlers["connect"]()

    def emit(self, event: str, data: object | None = None) -> None:
        for msg in self.progress:
            self.handlers["sock-1"](msg)
        self.handlers["disconnect"](RELAY_CLOSED)

    def close(self) -> None:
        self.closed += 1


def _progress(action: str) -> dict[str, object]:
    return {"data": {"action": action, "payload": {"message": action}}}


@pytest.fixture
def project(tmp_path: Path, git_env: Path) -> Path:
    root = tmp_path / "demo-app"
    root.mkdir()
    manifest = {"name": "demo-app", "version": "1.0.0", "scripts": {"build": "vite build"}}
    (root / "package.json").write_text(json.dumps(manifest, indent=2) + "\n", encoding="utf-8")
    return root


@pytest.fixture
def remote(tmp_path: Path, git_env: Path) -> Path:
    path = tmp_path / "remote.git"
    _git(tmp_path, "init", "--bare", str(path))
    return path


@dataclass
class Harness:
    project: Path
    remote: Path
    cache: MemoryCredentialCache
    http: MockHttpClient
    relay: ScriptedRelay
    console: MockConsole

    def engine(
        self,
        prompter: ScriptedPrompter,
        *,
        production: bool = False,
        build_cmd: str = "npm run build",
        connect_timeout: float = 2.0,
    ) -> PublishEngine:
        remote = self.remote

        def host_factory(host_type: HostType, http: HttpClient) -> HostClient:
            return LocalGithubClient(http, remote)

        def channel_factory(config: RelayConfig) -> BuildChannel:
            return self.relay

        return PublishEngine(
            RepoContext(name="demo-app", declared_version="1.0.0", source_dir=self.project),
            PublishOptions(build_cmd=build_cmd, production=production),
            cache=self.cache,
            prompter=prompter,
            console=self.console,
            http=self.http,
            config=Config(
                relay=RelayConfig(
                    url=RELAY,
                    connect_timeout_seconds=connect_timeout,
                    build_timeout_seconds=2.0,
                )
            ),
            channel_factory=channel_factory,
            host_factory=host_factory,
        )


@pytest.fixture
def harness(project: Path, remote: Path) -> Harness:
    http = MockHttpClient()
    http.respond("GET", f"{API}/user", {"login": "octo"})
    http.respond("GET", f"{API}/user/orgs", [])
    http.respond(
        "POST",
        f"{API}/user/repos",
        {"name": "demo-app", "full_name": "octo/demo-app", "owner": {"login": "octo"}},
    )
    http.respond("GET", f"{RELAY}/project/oss", {"code": 0, "data": []})
    cache = MemoryCredentialCache(
        values={CredentialKey.HOST_TYPE: "github", CredentialKey.TOKEN: "tok"}
    )
    return Harness(
        project=project,
        remote=remote,
        cache=cache,
        http=http,
        relay=ScriptedRelay(progress=[_progress("prepare"), _progress("build success")]),
        console=MockConsole(),
    )


def _run_all(engine: PublishEngine) -> None:
    assert engine.prepare() == Ok(None)
    assert engine.commit() == Ok(None)
    assert engine.publish() == Ok(None)


def test_first_dev_publish(harness: Harness) -> None:
    prompter = ScriptedPrompter(selections=["https", "oss"], texts=["chore: initial"])
    engine = harness.engine(prompter)

    _run_all(engine)

    assert engine.ctx.branch == "develop/1.0.0"
    assert _git(harness.remote, "log", "-1", "--format=%s", "master") == "chore: initial"
    assert "develop/1.0.0" in _git(harness.remote, "branch", "--list")
    assert _git(harness.remote, "tag", "--list") == ""
    assert harness.cache.values[CredentialKey.PUBLISH_TARGET] == "oss"

    query = harness.relay.queries[0]
    assert query["repo"] == str(harness.remote)
    assert query["branch"] == "develop/1.0.0"
    assert query["version"] == "1.0.0"
    assert query["prod"] == "false"
    assert query["gitPublish"] == "oss"
    assert harness.relay.closed == 1


def test_second_run_asks_nothing_and_creates_nothing(harness: Harness) -> None:
    _run_all(harness.engine(ScriptedPrompter(selections=["https", "oss"], texts=["chore: initial"])))
    harness.http.respond(
        "GET",
        f"{API}/repos/octo/demo-app",
        {"name": "demo-app", "full_name": "octo/demo-app", "owner": {"login": "octo"}},
    )
    posts_before = len(harness.http.calls_to("POST"))
    writes_before = list(harness.cache.writes)
    prompter = ScriptedPrompter()

    _run_all(harness.engine(prompter))

    assert prompter.asked == []
    assert len(harness.http.calls_to("POST")) == posts_before
    assert harness.cache.writes == writes_before


def test_local_changes_are_committed_before_build(harness: Harness) -> None:
    _run_all(harness.engine(ScriptedPrompter(selections=["https", "oss"], texts=["chore: initial"])))
    harness.http.respond(
        "GET",
        f"{API}/repos/octo/demo-app",
        {"name": "demo-app", "full_name": "octo/demo-app", "owner": {"login": "octo"}},
    )
    (harness.project / "main.js").write_text("console.log('hi')\n", encoding="utf-8")

    _run_all(harness.engine(ScriptedPrompter(texts=["", "feat: greet"])))

    assert _git(harness.remote, "log", "-1", "--format=%s", "develop/1.0.0") == "feat: greet"


def test_production_publish_tags_and_merges(harness: Harness) -> None:
    prompter = ScriptedPrompter(selections=["https", "oss"], texts=["chore: initial"])

    _run_all(harness.engine(prompter, production=True))

    assert _git(harness.remote, "tag", "--list") == "release/1.0.0"
    assert _git(harness.remote, "branch", "--list", "--format=%(refname:short)") == "master"
    assert _git(harness.remote, "rev-parse", "release/1.0.0^{commit}") != ""
    assert harness.relay.queries[0]["prod"] == "true"
    assert harness.console.find("released demo-app 1.0.0")


def test_production_publish_declined_overwrite(harness: Harness) -> None:
    harness.http.respond("GET", f"{RELAY}/project/oss", {"code": 0, "data": [{"name": "index.html"}]})
    engine = harness.engine(
        ScriptedPrompter(selections=["https", "oss", False], texts=["chore: initial"]),
        production=True,
    )
    assert engine.prepare() == Ok(None)
    assert engine.commit() == Ok(None)

    result = engine.publish()

    assert isinstance(result, Err)
    assert result.error.kind == "publish_aborted"
    assert harness.relay.queries == []
    assert _git(harness.remote, "tag", "--list") == ""


def test_failed_build_reports_action(harness: Harness) -> None:
    harness.relay.progress = [_progress("prepare"), _progress("install failed")]
    engine = harness.engine(ScriptedPrompter(selections=["https", "oss"], texts=["chore: initial"]))
    assert engine.prepare() == Ok(None)
    assert engine.commit() == Ok(None)

    result = engine.publish()

    assert isinstance(result, Err)
    assert result.error.kind == "build_failed"
    assert result.error.action == "install failed"


def test_disallowed_build_command(harness: Harness) -> None:
    engine = harness.engine(
        ScriptedPrompter(selections=["https", "oss"], texts=["chore: initial"]),
        build_cmd="make all",
    )
    assert engine.prepare() == Ok(None)
    assert engine.commit() == Ok(None)

    result = engine.publish()

    assert isinstance(result, Err)
    assert result.error.kind == "command_not_allowed"
    assert harness.relay.queries == []


def test_silent_relay_times_out_production_publish(harness: Harness) -> None:
    harness.relay.acknowledge = False
    engine = harness.engine(
        ScriptedPrompter(selections=["https", "oss"], texts=["chore: initial"]),
        production=True,
        connect_timeout=0.1,
    )
    assert engine.prepare() == Ok(None)
    assert engine.commit() == Ok(None)

    result = engine.publish()

    assert isinstance(result, Err)
    assert result.error.kind == "connect_timeout"
    assert harness.relay.closed == 1
    assert harness.relay.queries[0]["prod"] == "true"
    assert _git(harness.remote, "tag", "--list") == ""
    assert "develop/1.0.0" in _git(harness.remote, "branch", "--list")
