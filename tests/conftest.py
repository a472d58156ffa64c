"""Pytest configuration and fixtures for RaceGuard tests."""
import json
import sys
from pathlib import Path

import pytest

# Add the parent directory to the path so we can import raceguard
sys.path.insert(0, str(Path(__file__).parent.parent))

from raceguard import AliasResolver, ConcurrencyTracker


@pytest.fixture
def build_index():
    """Build the alias map and concurrency registry for a program."""

    def _build(program):
        resolver = AliasResolver()
        tracker = ConcurrencyTracker()
        resolver.scan(list(program), tracker)
        return resolver, tracker

    return _build


@pytest.fixture
def program_file(tmp_path):
    """Write a program dict (or raw text) to a temporary JSON file."""

    def _write(content, name="program.json"):
        path = tmp_path / name
        if isinstance(content, str):
            path.write_text(content, encoding="utf-8")
        else:
            path.write_text(json.dumps(content), encoding="utf-8")
        return path

    return _write
