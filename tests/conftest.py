"""Shared test fixtures for all test modules."""

import os
import stat
from pathlib import Path

import pytest


SAMPLE_DOCUMENT = """# Prime numbers

<S A id="s1">You are terse.</S>

<U A id="u1" name="Question">Name a prime.</U>

<A I id="a1" model="GPT-4o">Seven.</A>

<N I id="n1" name="Scratch">Private note</N>
"""


@pytest.fixture
def sample_text():
    """Chat document text with one block of each taggable type."""
    return SAMPLE_DOCUMENT


@pytest.fixture
def chat_file(tmp_path):
    """Sample chat document written to disk."""
    path = tmp_path / "notes.chat"
    path.write_text(SAMPLE_DOCUMENT)
    return path


@pytest.fixture
def fake_home(tmp_path, monkeypatch):
    """Point Path.home() at a temp dir so log files stay out of the real home."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setattr(Path, "home", lambda: home)
    return home


@pytest.fixture
def write_config():
    """Return a helper that writes a config file with owner-only permissions."""
    def _write(path: Path, content: str) -> Path:
        path.write_text(content)
        os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)
        return path
    return _write
