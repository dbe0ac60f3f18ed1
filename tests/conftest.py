"""Shared test fixtures and configuration for launchtube tests."""

import asyncio
import os
import sys
from pathlib import Path

import pytest

# Add launchtube to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent))


# Executables that should never run in tests - they open windows or talk to Windows
BLOCKED_EXECUTABLES = {
    "mpv",
    "mpv.exe",
    "powershell",
    "powershell.exe",
}


@pytest.fixture(autouse=True)
def block_real_player(monkeypatch):
    """Fail loudly if a test would start a real mpv or PowerShell."""
    original = asyncio.create_subprocess_exec

    async def guarded(program, *args, **kwargs):
        if Path(str(program)).name in BLOCKED_EXECUTABLES:
            raise RuntimeError(f"Test tried to launch {program}; inject a fake launcher")
        return await original(program, *args, **kwargs)

    monkeypatch.setattr(asyncio, "create_subprocess_exec", guarded)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's LAUNCHTUBE_* settings out of tests."""
    for name in list(os.environ):
        if name.startswith("LAUNCHTUBE_"):
            monkeypatch.delenv(name, raising=False)
