"""Unit tests for application settings validation."""

import pytest
from pydantic import ValidationError

from affiliate_engine.config.settings import Settings


def test_rejects_unknown_database_scheme():
    """Only PostgreSQL and the SQLite test driver are accepted."""
    with pytest.raises(ValidationError):
        Settings(database_url="mysql://localhost/engine", environment="test")


def test_debug_forbidden_in_production():
    """Production refuses debug mode."""
    with pytest.raises(ValidationError):
        Settings(environment="production", debug=True)


def test_log_level_normalized():
    assert Settings(environment="test", log_level="debug").log_level == "DEBUG"


def test_hierarchy_depth_capped_at_five():
    with pytest.raises(ValidationError):
        Settings(environment="test", hierarchy_max_depth=6)
