"""Root-level pytest fixtures for the calibtree test suite.

Provides configuration, directory, store and fake database fixtures.
"""

import pytest

from calibtree.schemas import ParamConfig, UserConfig, resolve_config
from calibtree.setup_directories import setup_output_directories
from calibtree.pipeline.artifact_store import ArtifactStore
from calibtree.pipeline.artifact_cache import ArtifactCache
from tests.helpers.fake_database import FakeDatabase


# =============================================================================
# Configuration Fixtures (Pydantic-based)
# =============================================================================

@pytest.fixture
def param_config():
    """Expert configuration with all defaults."""
    return ParamConfig()


@pytest.fixture
def internal_config(param_config, tmp_path):
    """Runtime configuration rooted in a temporary directory."""
    return resolve_config(param_config, UserConfig(BASE_DIR=str(tmp_path)))


@pytest.fixture
def make_config(param_config):
    """Factory fixture: InternalConfig from UserConfig-compatible kwargs.

    Examples
    --------
    >>> def test_custom_table(make_config):
    ...     config = make_config(TABLE_NAME="Calib")
    ...     assert config.store.table_name == "Calib"
    """
    def _make(**user_overrides):
        if user_overrides:
            return resolve_config(param_config, UserConfig(**user_overrides))
        return resolve_config(param_config, None)

    return _make


# =============================================================================
# Directory and collaborator fixtures
# =============================================================================

@pytest.fixture
def output_dirs(tmp_path):
    """Standard output directory structure: base, artifacts, logs."""
    return setup_output_directories(tmp_path)


@pytest.fixture
def store():
    return ArtifactStore(table_name="DBTree", compression="snappy")


@pytest.fixture
def fake_db():
    """Connected fake database with no canned responses."""
    return FakeDatabase()


@pytest.fixture
def cache(fake_db, store):
    return ArtifactCache(fake_db, store)
