"""Tests for coverage/instrument.py."""

from __future__ import annotations

from pathlib import Path

import pytest

from coverplane.core.errors import InstrumentationError
from coverplane.coverage.instrument import (
    AstInstrumenter,
    DefaultInstrumenter,
    LineInstrumenter,
    fingerprint_bytes,
    fingerprint_file,
)


class TestFingerprint:
    def test_file_matches_bytes(self, tmp_path: Path) -> None:
        path = tmp_path / "x.py"
        path.write_bytes(b"print('x')\n")
        assert fingerprint_file(path) == fingerprint_bytes(b"print('x')\n")

    def test_content_change_changes_fingerprint(self) -> None:
        assert fingerprint_bytes(b"a = 1\n") != fingerprint_bytes(b"a = 2\n")


class TestAstInstrumenter:
    def test_counts_constructs(self, project: Path) -> None:
        imap = AstInstrumenter().instrument(project / "src" / "a.py")

        assert len(imap.statements) == 6
        assert imap.lines == (1, 2, 5, 6, 7, 8)
        assert sorted(f.name for f in imap.functions.values()) == ["add", "sign"]
        assert [(b.line, b.arms) for b in imap.branches.values()] == [(6, 2)]

    def test_branch_arms(self) -> None:
        source = b"""\
def f(x, y):
    try:
        v = x or y or 0
    except ValueError:
        v = 1
    except TypeError:
        v = 2
    return v if v else (lambda: 0)()
"""
        imap = AstInstrumenter().instrument_source(source)

        arms = sorted((b.line, b.arms) for b in imap.branches.values())
        assert arms == [(2, 3), (3, 3), (8, 2)]
        assert {f.name for f in imap.functions.values()} == {"f", "(anonymous_1)"}

    def test_match_statement(self) -> None:
        source = b"""\
match command:
    case "a":
        pass
    case "b":
        pass
    case _:
        pass
"""
        imap = AstInstrumenter().instrument_source(source)
        assert [b.arms for b in imap.branches.values()] == [3]

    def test_syntax_error(self) -> None:
        with pytest.raises(InstrumentationError):
            AstInstrumenter().instrument_source(b"def broken(:\n", filename="broken.py")

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(InstrumentationError):
            AstInstrumenter().instrument(tmp_path / "nope.py")

    def test_same_source_same_map(self, project: Path) -> None:
        path = project / "src" / "b.py"
        assert AstInstrumenter().instrument(path) == AstInstrumenter().instrument(path)


class TestLineInstrumenter:
    def test_non_blank_lines_are_statements(self, tmp_path: Path) -> None:
        path = tmp_path / "app.js"
        path.write_text("const a = 1;\n\nfunction f() {}\n")

        imap = LineInstrumenter().instrument(path)

        assert imap.lines == (1, 3)
        assert len(imap.statements) == 2
        assert not imap.branches


class TestDefaultInstrumenter:
    def test_dispatches_on_suffix(self, tmp_path: Path) -> None:
        py = tmp_path / "m.py"
        py.write_text("if True:\n    pass\n")
        txt = tmp_path / "m.js"
        txt.write_text("if (true) {}\n")

        instrumenter = DefaultInstrumenter()

        assert len(instrumenter.instrument(py).branches) == 1
        assert len(instrumenter.instrument(txt).branches) == 0
