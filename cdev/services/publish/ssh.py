"""SSH key bootstrap and host connectivity probe.

Used only when the user picks the ssh transport for a fresh working copy.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from cdev.core.result import Err, Ok, Result
from cdev.platform.process import command_exists, run
from cdev.services.publish.errors import PublishError

# Probed in order; the first pair with a readable public key wins.
KEY_NAMES: tuple[str, ...] = ("id_ed25519", "id_ecdsa", "id_rsa")
KEY_COMMENT = "cdev"

_KEYGEN_TIMEOUT_SECONDS = 30.0
_PROBE_TIMEOUT_SECONDS = 30.0
_AUTH_MARKER = "successfully authenticated"


@dataclass(frozen=True, slots=True)
class SshKey:
    private_path: Path
    public_key: str
    generated: bool = False


class SshAccess(Protocol):
    def ensure_key(self) -> Result[SshKey, PublishError]:
        """Existing key pair, or a freshly generated ed25519 one."""
        ...

    def probe(self, ssh_target: str) -> Result[None, PublishError]:
        """Ok when ``ssh -T ssh_target`` reports successful authentication."""
        ...


def _unavailable(message: str, hint: str | None = None) -> PublishError:
    return PublishError(kind="ssh_unavailable", message=message, hint=hint)


class OpenSshAccess:
    """``SshAccess`` backed by the OpenSSH command line tools."""

    def __init__(self, ssh_dir: Path) -> None:
        self.ssh_dir = ssh_dir

    def find_key(self) -> SshKey | None:
        for name in KEY_NAMES:
            private = self.ssh_dir / name
            public = self.ssh_dir / f"{name}.pub"
            if not private.is_file() or not public.is_file():
                continue
            try:
                text = public.read_text(encoding="utf-8").strip()
            except OSError:
                continue
            if text:
                return SshKey(private_path=private, public_key=text)
        return None

    def ensure_key(self) -> Result[SshKey, PublishError]:
        existing = self.find_key()
        if existing is not None:
            return Ok(existing)

        if not command_exists("ssh-keygen"):
            return Err(
                _unavailable(
                    "ssh-keygen not found",
                    hint="Install OpenSSH or choose the https transport.",
                )
            )
        try:
            self.ssh_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        except OSError as e:
            return Err(_unavailable(f"could not create {self.ssh_dir}", hint=str(e)))

        private = self.ssh_dir / KEY_NAMES[0]
        result = run(
            ["ssh-keygen", "-t", "ed25519", "-N", "", "-C", KEY_COMMENT, "-f", str(private)],
            cwd=self.ssh_dir,
            timeout=_KEYGEN_TIMEOUT_SECONDS,
        )
        if isinstance(result, Err):
            return Err(_unavailable("ssh-keygen failed", hint=result.error.output or None))

        created = self.find_key()
        if created is None:
            return Err(_unavailable(f"ssh-keygen did not produce {private}.pub"))
        return Ok(SshKey(private_path=created.private_path, public_key=created.public_key, generated=True))

    def probe(self, ssh_target: str) -> Result[None, PublishError]:
        if not command_exists("ssh"):
            return Err(
                _unavailable("ssh not found", hint="Install OpenSSH or choose the https transport.")
            )

        result = run(
            ["ssh", "-T", "-o", "BatchMode=yes", "-o", "StrictHostKeyChecking=accept-new", ssh_target],
            cwd=self.ssh_dir if self.ssh_dir.is_dir() else Path.cwd(),
            timeout=_PROBE_TIMEOUT_SECONDS,
        )
        # Hosts greet and then exit non-zero because they grant no shell.
        if isinstance(result, Ok):
            output = result.value
        else:
            output = f"{result.error.stdout}\n{result.error.stderr}"
        if _AUTH_MARKER in output.lower():
            return Ok(None)
        return Err(
            _unavailable(
                f"ssh authentication to {ssh_target} failed",
                hint=output.strip() or None,
            )
        )
