from __future__ import annotations

import os

import pytest


def _data_service_enabled() -> bool:
    flag = os.getenv("METAPAGE_PYTEST_DATA_SERVICE")
    if flag:
        return flag.strip().lower() in {"1", "true", "yes", "on"}
    return False


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "requires_data_service: marks tests that call a live data service "
        "(enable with METAPAGE_PYTEST_DATA_SERVICE=1)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list) -> None:
    if _data_service_enabled():
        return
    skip = pytest.mark.skip(reason="set METAPAGE_PYTEST_DATA_SERVICE=1 to run")
    for item in items:
        if "requires_data_service" in item.keywords:
            item.add_marker(skip)
