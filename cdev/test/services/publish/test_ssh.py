from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

from cdev.core.result import Err, Ok
from cdev.services.publish.ssh import OpenSshAccess


def _completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


def _write_pair(ssh_dir: Path, name: str, public: str) -> None:
    ssh_dir.mkdir(parents=True, exist_ok=True)
    (ssh_dir / name).write_text("PRIVATE\n", encoding="utf-8")
    (ssh_dir / f"{name}.pub").write_text(public + "\n", encoding="utf-8")


class TestFindKey:
    def test_prefers_ed25519(self, tmp_path: Path) -> None:
        _write_pair(tmp_path, "id_rsa", "ssh-rsa AAAA rsa")
        _write_pair(tmp_path, "id_ed25519", "ssh-ed25519 AAAA ed")

        key = OpenSshAccess(tmp_path).find_key()

        assert key is not None
        assert key.public_key == "ssh-ed25519 AAAA ed"
        assert not key.generated

    def test_ignores_pair_without_public_key(self, tmp_path: Path) -> None:
        (tmp_path / "id_ed25519").write_text("PRIVATE\n", encoding="utf-8")

        assert OpenSshAccess(tmp_path).find_key() is None


class TestEnsureKey:
    def test_existing_key_runs_nothing(self, tmp_path: Path) -> None:
        _write_pair(tmp_path, "id_ecdsa", "ecdsa-sha2-nistp256 AAAA")

        with patch("subprocess.run") as mock_run:
            result = OpenSshAccess(tmp_path).ensure_key()

        assert isinstance(result, Ok)
        assert result.value.private_path == tmp_path / "id_ecdsa"
        mock_run.assert_not_called()

    def test_generates_ed25519(self, tmp_path: Path) -> None:
        ssh_dir = tmp_path / ".ssh"

        def keygen(cmd: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
            _write_pair(ssh_dir, "id_ed25519", "ssh-ed25519 AAAA cdev")
            return _completed()

        with (
            patch("shutil.which", return_value="/usr/bin/ssh-keygen"),
            patch("subprocess.run", side_effect=keygen) as mock_run,
        ):
            result = OpenSshAccess(ssh_dir).ensure_key()

        assert isinstance(result, Ok)
        assert result.value.generated
        assert result.value.public_key == "ssh-ed25519 AAAA cdev"
        cmd = mock_run.call_args[0][0]
        assert cmd[:3] == ["ssh-keygen", "-t", "ed25519"]
        assert cmd[-1] == str(ssh_dir / "id_ed25519")

    def test_missing_keygen(self, tmp_path: Path) -> None:
        with patch("shutil.which", return_value=None):
            result = OpenSshAccess(tmp_path).ensure_key()

        assert isinstance(result, Err)
        assert result.error.kind == "ssh_unavailable"

    def test_keygen_failure(self, tmp_path: Path) -> None:
        with (
            patch("shutil.which", return_value="/usr/bin/ssh-keygen"),
            patch("subprocess.run", return_value=_completed(1, stderr="permission denied")),
        ):
            result = OpenSshAccess(tmp_path).ensure_key()

        assert isinstance(result, Err)
        assert result.error.hint == "permission denied"


class TestProbe:
    def test_greeting_on_non_zero_exit_is_success(self, tmp_path: Path) -> None:
        greeting = "Hi octo! You've successfully authenticated, but GitHub does not provide shell access."
        with (
            patch("shutil.which", return_value="/usr/bin/ssh"),
            patch("subprocess.run", return_value=_completed(1, stderr=greeting)) as mock_run,
        ):
            result = OpenSshAccess(tmp_path).probe("git@github.com")

        assert result == Ok(None)
        cmd = mock_run.call_args[0][0]
        assert cmd[0:2] == ["ssh", "-T"]
        assert "BatchMode=yes" in cmd
        assert cmd[-1] == "git@github.com"

    def test_gitee_greeting(self, tmp_path: Path) -> None:
        greeting = "Hi octo! You've successfully authenticated, but GITEE.COM does not provide shell access."
        with (
            patch("shutil.which", return_value="/usr/bin/ssh"),
            patch("subprocess.run", return_value=_completed(0, stdout=greeting)),
        ):
            assert OpenSshAccess(tmp_path).probe("git@gitee.com") == Ok(None)

    def test_permission_denied(self, tmp_path: Path) -> None:
        with (
            patch("shutil.which", return_value="/usr/bin/ssh"),
            patch(
                "subprocess.run",
                return_value=_completed(255, stderr="git@github.com: Permission denied (publickey)."),
            ),
        ):
            result = OpenSshAccess(tmp_path).probe("git@github.com")

        assert isinstance(result, Err)
        assert result.error.kind == "ssh_unavailable"
        assert "Permission denied" in (result.error.hint or "")

    def test_missing_ssh(self, tmp_path: Path) -> None:
        mock_run = MagicMock()
        with patch("shutil.which", return_value=None), patch("subprocess.run", mock_run):
            result = OpenSshAccess(tmp_path).probe("git@github.com")

        assert isinstance(result, Err)
        mock_run.assert_not_called()
