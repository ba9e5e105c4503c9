"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages.
"""

import sys
from pathlib import Path

# Insert local src directory at the beginning of sys.path
# This ensures that the local coverplane package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of coverplane modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("coverplane"):
        del sys.modules[module_name]

import logging  # noqa: E402
from collections.abc import Callable, Iterator  # noqa: E402

import pytest  # noqa: E402
import structlog  # noqa: E402

from coverplane.coverage.models import (  # noqa: E402
    BranchInfo,
    FunctionInfo,
    InstrumentationMap,
)

MODULE_A = """\
def add(a, b):
    return a + b


def sign(x):
    if x < 0:
        return -1
    return 1
"""

MODULE_B = """\
def greet(name):
    return f"hello {name}"
"""


@pytest.fixture
def make_imap() -> Callable[..., InstrumentationMap]:
    """Factory for small hand-built instrumentation maps.

    Default map: statements s0..s2 on lines 1-3, one two-armed branch on
    line 2, one function on line 1.
    """

    def _make(
        fingerprint: str = "fp-1",
        *,
        statements: int = 3,
        branch_arms: int = 2,
        functions: int = 1,
    ) -> InstrumentationMap:
        return InstrumentationMap(
            fingerprint=fingerprint,
            statements={f"s{i}": i + 1 for i in range(statements)},
            branches={"b0": BranchInfo(line=2, arms=branch_arms)} if branch_arms else {},
            functions={f"f{i}": FunctionInfo(name=f"fn{i}", line=i + 1) for i in range(functions)},
            lines=tuple(range(1, statements + 1)),
        )

    return _make


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A small project: src/a.py, src/b.py, src/util/helpers.py, a test file."""
    (tmp_path / "src" / "util").mkdir(parents=True)
    (tmp_path / "tests").mkdir()
    (tmp_path / "src" / "a.py").write_text(MODULE_A)
    (tmp_path / "src" / "b.py").write_text(MODULE_B)
    (tmp_path / "src" / "util" / "helpers.py").write_text("VALUE = 1\n")
    (tmp_path / "tests" / "test_a.py").write_text("def test_add():\n    assert True\n")
    return tmp_path


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Drop handlers bound to streams captured by a finished test."""
    yield
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()
