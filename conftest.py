"""Global pytest configuration and shared fixtures."""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import pytest

from storage import InMemoryStore

TEST_DB_PATH = "test_database.db"

TEST_PACKAGES = ["agent", "providers", "security", "storage", "api"]


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Keep tests independent of real keys and local .env settings."""
    test_env = {
        "OPENAI_API_KEY": "",
        "LLM_PROVIDER": "openai",
        "LLM_API_KEY": "test-key",
        "LLM_MODEL": "test-model",
        "MEMORY_EMBEDDING_PROVIDER": "local",
        "MEMORY_EMBEDDING_API_KEY": "",
        "PYTHONIOENCODING": "utf-8",
    }

    with patch.dict(os.environ, test_env):
        yield test_env


@pytest.fixture
def temp_directory() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    temp_dir = tempfile.mkdtemp()
    try:
        yield Path(temp_dir)
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def mock_database_path(temp_directory: Path) -> str:
    """Provide a temporary database path for testing."""
    return str(temp_directory / TEST_DB_PATH)


@pytest.fixture
def kv_store() -> InMemoryStore:
    """Provide an empty in-memory key-value store."""
    return InMemoryStore()


# Test markers for different test categories
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
    config.addinivalue_line(
        "markers", "llm: marks tests as model provider-related"
    )
    config.addinivalue_line(
        "markers", "agent: marks tests as agent-related"
    )
    config.addinivalue_line(
        "markers", "security: marks tests as security gate-related"
    )
    config.addinivalue_line(
        "markers", "storage: marks tests as storage-related"
    )
    config.addinivalue_line(
        "markers", "api: marks tests as API-related"
    )


# Test collection customization
def pytest_collection_modifyitems(config, items):
    """Modify collected test items to add markers and organize tests."""
    for item in items:
        # Auto-mark tests based on file location
        test_file = Path(str(item.fspath)).as_posix()

        if "providers/tests" in test_file:
            item.add_marker(pytest.mark.llm)
        elif "agent/tests" in test_file:
            item.add_marker(pytest.mark.agent)
        elif "security/tests" in test_file:
            item.add_marker(pytest.mark.security)
        elif "storage/tests" in test_file:
            item.add_marker(pytest.mark.storage)
        elif "api/tests" in test_file:
            item.add_marker(pytest.mark.api)

        # Mark slow tests based on naming patterns
        if "slow" in item.name:
            item.add_marker(pytest.mark.slow)

        # Mark integration tests
        if "integration" in item.name or "scenario" in item.name:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# Test report customization
def pytest_terminal_summary(terminalreporter, exitstatus, config):
    """Add a per-package summary of passed tests."""
    passed = terminalreporter.stats.get("passed", [])
    if not passed:
        return

    terminalreporter.write_sep("=", "Agent Test Summary")
    for package in TEST_PACKAGES:
        package_tests = [
            report for report in passed
            if report.nodeid.startswith(f"{package}/tests")
        ]
        if package_tests:
            terminalreporter.write_line(f"{package}: {len(package_tests)} passed")
