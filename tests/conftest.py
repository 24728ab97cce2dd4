"""Pytest configuration for the Glyph test suite."""

import shutil

import pytest


def pytest_addoption(parser):
    """Add --node to pick the JavaScript runtime for end-to-end tests."""
    parser.addoption(
        "--node",
        action="store",
        default="node",
        help="JavaScript runtime used to execute generated code",
    )


@pytest.fixture(scope="session")
def node(request) -> str:
    """Path to the node executable; skips the test when none is installed."""
    path = shutil.which(request.config.getoption("node"))
    if path is None:
        pytest.skip("node not available")
    return path
