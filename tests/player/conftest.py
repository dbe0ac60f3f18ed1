"""Shared fixtures for player tests."""

import pytest

from fakes import FakeLauncher, FakeTransport, RecordingDispatcher
from launchtube.config import PlayerConfig
from launchtube.player import CallbackDescriptor, ExternalPlayer, PlaylistItem, Session


@pytest.fixture
def test_config():
    """Fast timings so background tasks finish within a test."""
    return PlayerConfig(
        mpv_path="mpv",
        mpv_options=[],
        socket_path="/tmp/launchtube-test.sock",
        poll_interval=0.01,
        ipc_timeout=0.05,
        helper_timeout=0.5,
        callback_timeout=1.0,
        progress_interval=3.0,
        stop_timeout=0.2,
    )


@pytest.fixture
def launcher():
    return FakeLauncher()


@pytest.fixture
def transport(launcher):
    return FakeTransport(launcher)


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def exit_calls():
    return []


@pytest.fixture
def player(test_config, dispatcher, transport, launcher, exit_calls):
    """ExternalPlayer wired to fakes."""
    return ExternalPlayer(
        test_config,
        dispatcher=dispatcher,
        transport_factory=lambda: transport,
        launcher=launcher,
        on_exit=lambda: exit_calls.append(True),
    )


@pytest.fixture
def callback_a():
    return CallbackDescriptor(url="http://media.local/a", body_template={"item": "a"})


@pytest.fixture
def callback_b():
    return CallbackDescriptor(url="http://media.local/b", body_template={"item": "b"})


@pytest.fixture
def playlist_session(callback_a, callback_b, transport):
    """Active two-item playlist session using the fake transport."""
    return Session(
        items=[
            PlaylistItem(url="http://media.local/a.mkv", on_complete=callback_a),
            PlaylistItem(url="http://media.local/b.mkv", on_complete=callback_b),
        ],
        is_playlist=True,
        on_complete=callback_a,
        transport=transport,
        active=True,
    )
