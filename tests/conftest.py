"""PyTest configuration.

Every test starts from an empty configuration with no BRANCHPIPE_ environment
overrides, so a developer's ~/.branchpipe.toml cannot change which buffer the
pipelines use.
"""

import logging
import os

import pytest

from branchpipe.util.config import reset_config

logger = logging.getLogger(__name__)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    for key in list(os.environ.keys()):
        if key.startswith("BRANCHPIPE_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    reset_config()
    yield
    reset_config()
