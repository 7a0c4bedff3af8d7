"""Pytest fixtures for reconcise tests."""

import pytest


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep RECONCISE_* settings from the developer's shell out of tests."""
    for var in (
        "RECONCISE_SCOPE",
        "RECONCISE_REGION",
        "RECONCISE_ENDPOINT_URL",
        "RECONCISE_PAGE_SIZE",
        "AWS_REGION",
        "AWS_ENDPOINT_URL",
    ):
        monkeypatch.delenv(var, raising=False)
