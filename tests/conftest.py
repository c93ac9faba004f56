"""
Pytest configuration and shared fixtures for all jobresolve tests.

Every corpus is written into the test's own tmp_path, so tests never share
module files and synthesis tests can modify their target freely.
"""

import sys
import pytest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))
from jobresolve.analysis.module_system import ModuleStore
from tests.test_utils import CountingModuleStore, demo_corpus


# =============================================================================
# Corpus fixtures
# =============================================================================

@pytest.fixture
def corpus_dir(tmp_path):
    """Directory holding the Core/Demo/Out corpus."""
    directory = tmp_path / "modules"
    demo_corpus(directory)
    return directory


@pytest.fixture
def corpus_paths(corpus_dir):
    return {p.stem: p for p in sorted(corpus_dir.iterdir()) if p.suffix == ".jmod"}


@pytest.fixture
def store(corpus_dir):
    """Store over the demo corpus with Core and Demo loaded; closed after the test."""
    with ModuleStore([corpus_dir]) as s:
        s.select(["Core", "Demo"])
        yield s


@pytest.fixture(autouse=True)
def reset_counting_stores():
    CountingModuleStore.instances.clear()
    yield
    CountingModuleStore.instances.clear()


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers for test organization."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
