"""
pytest configuration for cencli tests.

Adds src directory to Python path for imports and sets up test environment.
"""

import os
import sys
from pathlib import Path

import pytest

# Keep a developer's real credentials and config out of the tests
for _var in (
    "CENSYS_API_TOKEN",
    "CENSYS_ORG_ID",
    "CENCLI_CONFIG",
    "CENCLI_TIMEOUT",
    "CENCLI_DEBUG",
    "CENCLI_OUTPUT_FORMAT",
    "LOG_FORMAT",
):
    os.environ.pop(_var, None)

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Reset module-level config and log context between tests."""
    from config.config import reset_config
    from core.logging.context import clear_log_context

    reset_config()
    clear_log_context()
    yield
    reset_config()
    clear_log_context()
