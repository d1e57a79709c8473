"""Import and call policies for the cdev package."""

from __future__ import annotations

import ast
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class ImportRef:
    module: str
    line: int


def cdev_root() -> Path:
    return Path(__file__).resolve().parents[2]


def iter_source_files() -> list[Path]:
    root = cdev_root()
    files: list[Path] = []
    for path in sorted(root.rglob("*.py")):
        rel = path.relative_to(root)
        if rel.parts[0] == "test" or "__pycache__" in rel.parts:
            continue
        files.append(path)
    return files


def read_tree(path: Path) -> ast.AST:
    return ast.parse(path.read_text(encoding="utf-8"), filename=str(path))


def parse_imports(path: Path) -> list[ImportRef]:
    imports: list[ImportRef] = []
    for node in ast.walk(read_tree(path)):
        if isinstance(node, ast.Import):
            imports.extend(ImportRef(module=alias.name, line=node.lineno) for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module is not None and not node.level:
            imports.append(ImportRef(module=node.module, line=node.lineno))
    return imports


def matches_prefix(module: str, prefix: str) -> bool:
    return module == prefix or module.startswith(prefix + ".")


def _offenders(prefix: str, allowed: set[str]) -> list[str]:
    root = cdev_root()
    found: list[str] = []
    for path in iter_source_files():
        rel = path.relative_to(root).as_posix()
        if rel in allowed or any(rel.startswith(a) for a in allowed if a.endswith("/")):
            continue
        for item in parse_imports(path):
            if matches_prefix(item.module, prefix):
                found.append(f"{rel}:{item.line}: import '{item.module}'")
    return found


def test_services_do_not_import_cli() -> None:
    offenders = [o for o in _offenders("cdev.cli", {"cli/"}) if o.startswith("services/")]
    assert not offenders, "services -> cli dependency violations:\n" + "\n".join(offenders)


def test_core_imports_nothing_above_it() -> None:
    offenders: list[str] = []
    for layer in ("cdev.platform", "cdev.git", "cdev.services", "cdev.cli", "cdev.output"):
        offenders += [o for o in _offenders(layer, set()) if o.startswith("core/")]
    assert not offenders, "core layering violations:\n" + "\n".join(offenders)


def test_rich_only_in_console() -> None:
    offenders = _offenders("rich", {"output/console.py"})
    assert not offenders, "direct rich usage:\n" + "\n".join(offenders)


def test_typer_only_in_cli() -> None:
    offenders = _offenders("typer", {"cli/"})
    assert not offenders, "typer outside the cli package:\n" + "\n".join(offenders)


def test_socketio_only_in_build_handoff() -> None:
    offenders = _offenders("socketio", {"services/publish/cloudbuild.py"})
    assert not offenders, "socketio outside the build handoff:\n" + "\n".join(offenders)


def _direct_subprocess_calls(tree: ast.AST) -> list[int]:
    lines: list[int] = []
    for node in ast.walk(tree):
        if not isinstance(node, ast.Call) or not isinstance(node.func, ast.Attribute):
            continue
        func = node.func
        if func.attr in {"run", "check_output", "Popen"} and isinstance(func.value, ast.Name):
            if func.value.id == "subprocess":
                lines.append(node.lineno)
    return lines


def test_subprocess_only_in_platform_process() -> None:
    root = cdev_root()
    offenders: list[str] = []
    for path in iter_source_files():
        rel = path.relative_to(root).as_posix()
        if rel == "platform/process.py":
            continue
        offenders += [f"{rel}:{line}" for line in _direct_subprocess_calls(read_tree(path))]
    assert not offenders, "direct subprocess calls:\n" + "\n".join(offenders)
