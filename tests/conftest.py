"""
Pytest configuration for wieldymarkup
"""

import pytest

from wieldymarkup import Compiler


@pytest.fixture
def compiler():
    """A fresh compiler with default options."""
    return Compiler()


@pytest.fixture
def indented_compiler():
    """A compiler that already knows a two-space indent unit."""
    c = Compiler()
    c.indent_token = "  "
    return c


@pytest.fixture
def build_dir(tmp_path):
    """A directory holding one source file and a build config pointing at it."""
    (tmp_path / "index.wml").write_text("div.card\n  p <Hello>\n")
    (tmp_path / "build.yaml").write_text(
        "write:\n"
        "  - src: index.wml\n"
        "    dst: index.html\n"
    )
    return tmp_path
