"""Tests for the launchtube command line."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from launchtube.cli import cli
from launchtube.player import LaunchFailed


@pytest.fixture
def runner():
    """Create a Click test runner."""
    return CliRunner()


class FakeSession:
    active = False
    exit_task = None


class FakePlayer:
    """Records calls; sessions end immediately."""

    instances = []

    def __init__(self, config):
        self.config = config
        self.calls = []
        self.stopped = False
        self.error = None
        FakePlayer.instances.append(self)

    async def play(self, url, title=None, start_position=0.0):
        self.calls.append(("play", url, title, start_position))
        return FakeSession()

    async def play_playlist(self, items, start_position=0.0):
        if not items:
            raise LaunchFailed("nothing")
        self.calls.append(("playlist", [item["url"] for item in items], start_position))
        return FakeSession()

    def get_status(self):
        return {"playing": False}

    async def stop(self):
        self.stopped = True


@pytest.fixture
def fake_player():
    FakePlayer.instances = []
    with patch("launchtube.cli.ExternalPlayer", FakePlayer):
        yield FakePlayer


class TestPlayCommand:
    """Tests for 'launchtube play'."""

    def test_play(self, runner, fake_player):
        result = runner.invoke(cli, ["play", "http://a.mkv", "-t", "A", "--start", "12.5"], obj={})

        assert result.exit_code == 0, result.output
        player = fake_player.instances[0]
        assert player.calls == [("play", "http://a.mkv", "A", 12.5)]
        assert player.stopped is True
        assert '{"playing": false}' in result.output

    def test_mpv_override(self, runner, fake_player):
        result = runner.invoke(cli, ["--mpv", "/opt/mpv", "play", "http://a.mkv"], obj={})

        assert result.exit_code == 0, result.output
        assert fake_player.instances[0].config.mpv_path == "/opt/mpv"

    def test_launch_failure_is_reported(self, runner, fake_player):
        async def fail(self, url, title=None, start_position=0.0):
            raise LaunchFailed("Could not start mpv: not found")

        with patch.object(FakePlayer, "play", fail):
            result = runner.invoke(cli, ["play", "http://a.mkv"], obj={})

        assert result.exit_code == 1
        assert "Could not start mpv" in result.output


class TestPlaylistCommand:
    """Tests for 'launchtube playlist'."""

    def test_playlist(self, runner, fake_player):
        result = runner.invoke(cli, ["playlist", "http://a.mkv", "http://b.mkv"], obj={})

        assert result.exit_code == 0, result.output
        assert fake_player.instances[0].calls == [
            ("playlist", ["http://a.mkv", "http://b.mkv"], 0.0)
        ]

    def test_playlist_requires_urls(self, runner, fake_player):
        result = runner.invoke(cli, ["playlist"], obj={})
        assert result.exit_code == 2


def test_help(runner):
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    for command in ("serve", "play", "playlist"):
        assert command in result.output
