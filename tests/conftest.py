import os

import pytest


@pytest.fixture
def isolated_settings(tmp_path, monkeypatch):
    """Run with no settings file, .env or FOOTBOOKER_* variables around."""
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.upper().startswith("FOOTBOOKER_"):
            monkeypatch.delenv(name)
    return tmp_path
