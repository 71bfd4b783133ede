# award-harvester/tests/conftest.py
#
# Test bootstrap for pytest: put the repository root on sys.path so tests can
# import `award_harvester` and `tests.factories` without an editable install.
#
# Fixture Organization:
# - This file: core fixtures (repo root, fast config, stub API)
# - tests/factories.py: record builders and the stub USAspending API
#
from __future__ import annotations

import sys
from pathlib import Path

import pytest
from loguru import logger


_repo_root = Path(__file__).resolve().parents[1]
_repo_root_str = str(_repo_root)

if _repo_root_str not in sys.path:
    sys.path.insert(0, _repo_root_str)

from award_harvester.config.loader import reload_config  # noqa: E402
from award_harvester.config.schemas import HarvesterConfig, default_categories  # noqa: E402
from award_harvester.models.query import AwardCategory  # noqa: E402
from tests.factories import StubUSAspendingAPI, make_config  # noqa: E402


# Configure test logging using loguru for consistency with application code
logger.remove()
logger.configure(extra={"stage": "-", "run_id": "-"})
logger.add(
    sys.stderr,
    level="INFO",
    format="{time:YYYY-MM-DD HH:mm:ss} {level} {extra[stage]} {name}: {message}",
)


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers",
        "fast: Fast unit tests that should complete in < 1 second",
    )


@pytest.fixture
def repo_root() -> Path:
    return _repo_root


@pytest.fixture(autouse=True)
def _clear_config_cache():
    """get_config is cached; never let one test's configuration leak into the next."""
    reload_config()
    yield
    reload_config()


@pytest.fixture
def contracts_only():
    return {AwardCategory.CONTRACTS: default_categories()[AwardCategory.CONTRACTS]}


@pytest.fixture
def fast_config(tmp_path, contracts_only) -> HarvesterConfig:
    return make_config(tmp_path, categories=contracts_only)


@pytest.fixture
def stub_api() -> StubUSAspendingAPI:
    return StubUSAspendingAPI()
