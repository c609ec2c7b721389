"""Validate layer import boundaries inside the taleweaver package."""

from __future__ import annotations

import ast
from pathlib import Path

PACKAGE = "taleweaver"
PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_SOURCE_ROOT = PROJECT_ROOT / "src" / PACKAGE
KNOWN_LAYERS = {"api", "core", "adapters", "cli", "domain", "config"}
# Inner layers never reach outward: domain < core < adapters/api/cli.
RULES: dict[str, set[str]] = {
    "domain": {"core", "api", "adapters", "cli"},
    "core": {"api", "adapters", "cli"},
}


def _layer_for_path(path: Path, source_root: Path) -> str | None:
    try:
        relative = path.relative_to(source_root)
    except ValueError:
        return None
    if len(relative.parts) < 2:
        return None
    return relative.parts[0]


def _layer_of_module(module_name: str) -> str | None:
    parts = module_name.split(".")
    if len(parts) < 2 or parts[0] != PACKAGE:
        return None
    return parts[1] if parts[1] in KNOWN_LAYERS else None


def _absolute_module(node: ast.ImportFrom, path: Path, source_root: Path) -> str:
    if node.level == 0:
        return node.module or ""
    package_parts = [PACKAGE, *path.relative_to(source_root).with_suffix("").parts[:-1]]
    if node.level - 1 > len(package_parts):
        return ""
    base = package_parts[: len(package_parts) - (node.level - 1)]
    return ".".join([*base, *(node.module.split(".") if node.module else [])])


def imported_layers(node: ast.Import | ast.ImportFrom, path: Path, source_root: Path) -> set[str]:
    """Return the package layers an import statement reaches into."""
    modules: list[str] = []
    if isinstance(node, ast.Import):
        modules = [alias.name for alias in node.names]
    else:
        base = _absolute_module(node, path, source_root)
        if base == PACKAGE:
            modules = [f"{PACKAGE}.{alias.name}" for alias in node.names]
        elif base:
            modules = [base]
    return {layer for layer in map(_layer_of_module, modules) if layer is not None}


def check_file(path: Path, source_root: Path = DEFAULT_SOURCE_ROOT) -> list[str]:
    layer = _layer_for_path(path, source_root)
    banned = RULES.get(layer or "", set())
    if not banned:
        return []
    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    violations: list[str] = []
    for node in ast.walk(tree):
        if not isinstance(node, (ast.Import, ast.ImportFrom)):
            continue
        for reached in sorted(imported_layers(node, path, source_root) & banned):
            violations.append(f"{path}: {layer} must not import {PACKAGE}.{reached}")
    return violations


def check_import_boundaries(source_root: Path = DEFAULT_SOURCE_ROOT) -> list[str]:
    violations: list[str] = []
    for path in sorted(source_root.rglob("*.py")):
        violations.extend(check_file(path, source_root))
    return violations


def main() -> None:
    violations = check_import_boundaries()
    if violations:
        raise SystemExit("\n".join(violations))
    print("import boundary checks passed")


if __name__ == "__main__":
    main()
