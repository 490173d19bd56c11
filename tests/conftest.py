"""Shared pytest fixtures for playspace tests."""

import os
from collections.abc import Generator
from pathlib import Path

import pytest

from playspace import ExclusionDomain, PlayspaceConfig

# ============================================================================
# Process State Isolation
# ============================================================================


@pytest.fixture(autouse=True)
def _restore_process_state() -> Generator[None]:
    """Put environment and working directory back even if a test fails mid-playspace."""
    saved_env = os.environ.copy()
    saved_cwd = os.getcwd()
    yield
    os.chdir(saved_cwd)
    os.environ.clear()
    os.environ.update(saved_env)


# ============================================================================
# Playspace Fixtures
# ============================================================================


@pytest.fixture
def domain() -> ExclusionDomain:
    """Private exclusion domain so tests never contend on GLOBAL_DOMAIN."""
    return ExclusionDomain("test")


@pytest.fixture
def temp_root(tmp_path: Path) -> Path:
    """Canonical parent directory for scratch directories."""
    root = tmp_path / "root"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def config(temp_root: Path) -> PlayspaceConfig:
    return PlayspaceConfig(temp_root=temp_root)
