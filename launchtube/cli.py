"""
Command line interface for launchtube's player core.
"""

import asyncio
import json
import logging

import click

from . import config
from .config import PlayerConfig, setup_logging
from .player import ExternalPlayer, PlayerError


async def _play_until_exit(player: ExternalPlayer, start) -> dict:
    """Start playback via `start`, wait for mpv to exit, return the last status."""
    session = await start()
    last_status = player.get_status()
    try:
        while session.active:
            await asyncio.sleep(player.config.poll_interval)
            if session.active:
                last_status = player.get_status()
        if session.exit_task is not None:
            await session.exit_task
    finally:
        await player.stop()
    return last_status


def _run(player: ExternalPlayer, start) -> None:
    try:
        status = asyncio.run(_play_until_exit(player, start))
    except PlayerError as e:
        raise click.ClickException(str(e))
    except KeyboardInterrupt:
        click.echo("Interrupted")
        return
    click.echo(json.dumps(status))


@click.group(name="launchtube")
@click.help_option("-h", "--help", help="Show this message and exit")
@click.option("--debug", is_flag=True, default=config.DEBUG, help="Enable debug logging")
@click.option("--mpv", "mpv_path", default=None, help="mpv executable to use")
@click.pass_context
def cli(ctx, debug, mpv_path):
    """launchtube - play streams in mpv and report progress back."""
    setup_logging("DEBUG" if debug else None)
    player_config = PlayerConfig.from_env()
    if mpv_path:
        player_config.mpv_path = mpv_path
    ctx.ensure_object(dict)
    ctx.obj["config"] = player_config


@cli.command("serve")
@click.option("--host", default=config.HOST, show_default=True, help="Host to bind to")
@click.option("--port", type=int, default=config.PORT, show_default=True, help="Port to listen on")
@click.pass_context
def serve(ctx, host, port):
    """Run the player HTTP API."""
    from .http_api import run_server

    player = ExternalPlayer(ctx.obj["config"])
    try:
        asyncio.run(run_server(host, port, player))
    except KeyboardInterrupt:
        logging.getLogger("launchtube").info("Shutting down")


@cli.command("play")
@click.argument("url")
@click.option("--title", "-t", default=None, help="Window title")
@click.option("--start", "-s", "start_position", type=float, default=0.0,
              help="Start position in seconds")
@click.pass_context
def play(ctx, url, title, start_position):
    """Play URL and wait for mpv to exit."""
    player = ExternalPlayer(ctx.obj["config"])
    _run(player, lambda: player.play(url, title=title, start_position=start_position))


@cli.command("playlist")
@click.argument("urls", nargs=-1, required=True)
@click.option("--start", "-s", "start_position", type=float, default=0.0,
              help="Start position in seconds (first item)")
@click.pass_context
def playlist(ctx, urls, start_position):
    """Play URLS in order and wait for mpv to exit."""
    player = ExternalPlayer(ctx.obj["config"])
    items = [{"url": url} for url in urls]
    _run(player, lambda: player.play_playlist(items, start_position=start_position))


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
