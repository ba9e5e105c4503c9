"""Instrumentation maps for source files.

Real instrumentation (rewriting source to emit counters) belongs to the
test runner. The engine only needs the static side of it: which
constructs a file has. Instrumenters produce that as an
InstrumentationMap, used to synthesize zero-coverage records for files
that were in scope but never executed.

Built-in instrumenters:
- AstInstrumenter: Python sources, via the ``ast`` module
- LineInstrumenter: any text file, one statement per non-blank line
"""

from __future__ import annotations

import ast
import hashlib
from pathlib import Path
from typing import Protocol

from coverplane.core.errors import InstrumentationError
from coverplane.coverage.models import BranchInfo, FunctionInfo, InstrumentationMap


def fingerprint_bytes(data: bytes) -> str:
    """SHA-256 hex digest of file content."""
    return hashlib.sha256(data).hexdigest()


def fingerprint_file(path: Path) -> str:
    """SHA-256 hex digest of a file, read in chunks."""
    hasher = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


class Instrumenter(Protocol):
    """Produces the static construct map of one source file."""

    def instrument(self, path: Path) -> InstrumentationMap:
        """Instrument ``path``.

        Raises:
            InstrumentationError: The file cannot be read or parsed.
        """
        ...


class _ConstructCollector(ast.NodeVisitor):
    def __init__(self) -> None:
        self.statements: dict[str, int] = {}
        self.branches: dict[str, BranchInfo] = {}
        self.functions: dict[str, FunctionInfo] = {}

    def visit(self, node: ast.AST) -> None:
        if isinstance(node, ast.stmt):
            self.statements[str(len(self.statements))] = node.lineno
        super().visit(node)

    def _branch(self, node: ast.expr | ast.stmt, arms: int) -> None:
        self.branches[str(len(self.branches))] = BranchInfo(line=node.lineno, arms=arms)

    def _function(self, name: str, line: int) -> None:
        self.functions[str(len(self.functions))] = FunctionInfo(name=name, line=line)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._function(node.name, node.lineno)
        self.generic_visit(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self._function(node.name, node.lineno)
        self.generic_visit(node)

    def visit_Lambda(self, node: ast.Lambda) -> None:
        self._function(f"(anonymous_{len(self.functions)})", node.lineno)
        self.generic_visit(node)

    def visit_If(self, node: ast.If) -> None:
        self._branch(node, 2)
        self.generic_visit(node)

    def visit_While(self, node: ast.While) -> None:
        self._branch(node, 2)
        self.generic_visit(node)

    def visit_For(self, node: ast.For) -> None:
        self._branch(node, 2)
        self.generic_visit(node)

    def visit_AsyncFor(self, node: ast.AsyncFor) -> None:
        self._branch(node, 2)
        self.generic_visit(node)

    def visit_IfExp(self, node: ast.IfExp) -> None:
        self._branch(node, 2)
        self.generic_visit(node)

    def visit_BoolOp(self, node: ast.BoolOp) -> None:
        self._branch(node, len(node.values))
        self.generic_visit(node)

    def visit_Try(self, node: ast.Try) -> None:
        # one arm per handler plus the no-exception path
        self._branch(node, len(node.handlers) + 1)
        self.generic_visit(node)

    def visit_TryStar(self, node: ast.TryStar) -> None:
        self._branch(node, len(node.handlers) + 1)
        self.generic_visit(node)

    def visit_Match(self, node: ast.Match) -> None:
        self._branch(node, len(node.cases))
        self.generic_visit(node)


class AstInstrumenter:
    """Instrumentation maps for Python source files."""

    def instrument(self, path: Path) -> InstrumentationMap:
        try:
            data = path.read_bytes()
        except OSError as e:
            raise InstrumentationError.failed(str(path), str(e)) from e
        return self.instrument_source(data, filename=str(path))

    def instrument_source(self, data: bytes, *, filename: str = "<source>") -> InstrumentationMap:
        try:
            tree = ast.parse(data, filename=filename)
        except (SyntaxError, ValueError) as e:
            raise InstrumentationError.failed(filename, str(e)) from e

        collector = _ConstructCollector()
        collector.visit(tree)
        return InstrumentationMap(
            fingerprint=fingerprint_bytes(data),
            statements=collector.statements,
            branches=collector.branches,
            functions=collector.functions,
            lines=tuple(sorted(set(collector.statements.values()))),
        )


class LineInstrumenter:
    """Fallback for non-Python files: every non-blank line is a statement."""

    def instrument(self, path: Path) -> InstrumentationMap:
        try:
            data = path.read_bytes()
        except OSError as e:
            raise InstrumentationError.failed(str(path), str(e)) from e

        text = data.decode("utf-8", errors="replace")
        lines = tuple(n for n, line in enumerate(text.splitlines(), start=1) if line.strip())
        return InstrumentationMap(
            fingerprint=fingerprint_bytes(data),
            statements={str(i): n for i, n in enumerate(lines)},
            lines=lines,
        )


class DefaultInstrumenter:
    """Dispatch on file suffix: Python via ast, everything else by lines."""

    def __init__(self) -> None:
        self._python = AstInstrumenter()
        self._text = LineInstrumenter()

    def instrument(self, path: Path) -> InstrumentationMap:
        if path.suffix in (".py", ".pyi"):
            return self._python.instrument(path)
        return self._text.instrument(path)
