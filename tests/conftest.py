"""Shared fixtures for echomind tests."""

import os

os.environ.setdefault("ECHOMIND_TIMEZONE", "America/New_York")

import pytest


@pytest.fixture()
def data_dir(tmp_path, monkeypatch):
    """Redirect all data file paths to a temp directory."""
    import echomind.scheduling.reminders as reminders_mod
    import echomind.storage as storage_mod

    monkeypatch.setattr(storage_mod, "DATA_DIR", tmp_path)
    monkeypatch.setattr(reminders_mod, "REMINDERS_DIR", tmp_path / "reminders")
    return tmp_path
