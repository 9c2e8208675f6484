"""Build the module-level import graph of the package.

Used in tests to enforce:
  - No cycles between ortmodel modules.
  - No forbidden edges (layering: foundation modules never reach up into
    the registry, graph, model or I/O layers).

Only top-level statements are scanned; imports local to a function or
guarded by ``if TYPE_CHECKING`` are how cycles are broken on purpose and
are not edges here.
"""
from __future__ import annotations

import ast
from pathlib import Path
from typing import Dict, List, Set, Tuple

PACKAGE = "ortmodel"


def _module_name(root: Path, py: Path) -> str:
    parts = list(py.relative_to(root).with_suffix("").parts)
    if parts[-1] == "__init__":
        parts = parts[:-1]
    return ".".join([PACKAGE, *parts])


def _resolve_from(mod: str, is_pkg: bool, node: ast.ImportFrom) -> str | None:
    if node.level == 0:
        return node.module
    base = mod.split(".")
    if not is_pkg:
        base = base[:-1]
    if node.level > 1:
        base = base[: len(base) - (node.level - 1)]
    if node.module:
        base = base + node.module.split(".")
    return ".".join(base)


def build_import_graph(root: str | Path) -> Dict[str, Set[str]]:
    root_path = Path(root)
    files = {
        _module_name(root_path, py): py
        for py in root_path.rglob("*.py")
        if "__pycache__" not in py.parts
    }
    edges: Dict[str, Set[str]] = {m: set() for m in files}
    for mod, py in files.items():
        is_pkg = py.name == "__init__.py"
        tree = ast.parse(py.read_text(encoding="utf-8"))
        for node in tree.body:
            if isinstance(node, ast.Import):
                for n in node.names:
                    if n.name.startswith(PACKAGE):
                        edges[mod].add(n.name)
            elif isinstance(node, ast.ImportFrom):
                target = _resolve_from(mod, is_pkg, node)
                if not target or not target.startswith(PACKAGE):
                    continue
                for n in node.names:
                    sub = f"{target}.{n.name}"
                    edges[mod].add(sub if sub in files else target)
    for targets in list(edges.values()):
        for dst in targets:
            edges.setdefault(dst, set())
    return edges


def detect_cycles(graph: Dict[str, Set[str]]) -> List[List[str]]:
    visited: Set[str] = set()
    stack: Set[str] = set()
    cycles: List[List[str]] = []

    def dfs(node: str, path: List[str]):
        if node in stack:
            if node in path:
                idx = path.index(node)
                cycles.append(path[idx:] + [node])
            return
        if node in visited:
            return
        visited.add(node)
        stack.add(node)
        for nxt in sorted(graph.get(node, ())):
            dfs(nxt, path + [nxt])
        stack.remove(node)

    for n in sorted(graph):
        if n not in visited:
            dfs(n, [n])
    return cycles


def forbidden_edges(
    graph: Dict[str, Set[str]], rules: List[Tuple[str, str]]
) -> List[Tuple[str, str]]:
    found: List[Tuple[str, str]] = []
    for src, targets in graph.items():
        for dst in targets:
            for a, b in rules:
                if src.startswith(a) and dst.startswith(b):
                    found.append((src, dst))
    return found


__all__ = ["build_import_graph", "detect_cycles", "forbidden_edges"]
