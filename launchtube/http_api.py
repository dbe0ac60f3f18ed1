"""
launchtube HTTP API - player endpoints.

Service scripts running in the browser ask launchtube to hand a stream
over to mpv through these endpoints.

Endpoints:
- POST /api/1/player/play      → Play one URL
- POST /api/1/player/playlist  → Play a list of items in order
- GET  /api/1/player/status    → Current playback status
- POST /api/1/player/stop      → Stop playback

Run with:
    launchtube serve --port 8765
"""

import asyncio
import json
import logging

from aiohttp import web

from .player import ExternalPlayer, InvalidRequest, LaunchFailed

logger = logging.getLogger("launchtube.http")

PLAYER_KEY = web.AppKey("player", ExternalPlayer)


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def _read_json(request: web.Request) -> dict:
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidRequest(f"Invalid request: {e}") from e
    if not isinstance(data, dict):
        raise InvalidRequest("Invalid request: body must be a JSON object")
    return data


def _start_position(data: dict) -> float:
    value = data.get("startPosition") or 0
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise InvalidRequest("startPosition must be a number")
    return float(value)


async def handle_player_play(request: web.Request) -> web.Response:
    """Play a single URL."""
    player = request.app[PLAYER_KEY]
    try:
        data = await _read_json(request)
        logger.debug(f"Player API: play request {data}")

        url = data.get("url")
        if not url:
            return _error("url is required", 400)

        start_position = _start_position(data)
        await player.play(
            url,
            title=data.get("title"),
            start_position=start_position,
            on_complete=data.get("onComplete"),
            on_progress=data.get("onProgress"),
        )
    except InvalidRequest as e:
        return _error(str(e), 400)
    except LaunchFailed as e:
        logger.error(f"Player API: {e}")
        return _error(str(e), 500)

    return web.json_response({"status": "playing", "position": round(start_position, 1)})


async def handle_player_playlist(request: web.Request) -> web.Response:
    """Play a list of items."""
    player = request.app[PLAYER_KEY]
    try:
        data = await _read_json(request)
        logger.debug(f"Player API: playlist request {data}")

        items = data.get("items")
        if not items or not isinstance(items, list):
            return _error("items array is required", 400)

        await player.play_playlist(items, start_position=_start_position(data))
    except InvalidRequest as e:
        return _error(str(e), 400)
    except LaunchFailed as e:
        logger.error(f"Player API: {e}")
        return _error(str(e), 500)

    return web.json_response({"status": "playing", "count": len(items)})


async def handle_player_status(request: web.Request) -> web.Response:
    """Report playback status."""
    return web.json_response(request.app[PLAYER_KEY].get_status())


async def handle_player_stop(request: web.Request) -> web.Response:
    """Stop playback."""
    await request.app[PLAYER_KEY].stop()
    return web.json_response({"status": "ok"})


async def handle_unknown(request: web.Request) -> web.Response:
    return _error("Unknown player endpoint", 404)


async def _stop_player(app: web.Application) -> None:
    await app[PLAYER_KEY].stop()


def create_app(player: ExternalPlayer | None = None) -> web.Application:
    """Create and configure the aiohttp application."""
    app = web.Application()
    app[PLAYER_KEY] = player or ExternalPlayer()

    app.router.add_post("/api/1/player/play", handle_player_play)
    app.router.add_post("/api/1/player/playlist", handle_player_playlist)
    app.router.add_get("/api/1/player/status", handle_player_status)
    app.router.add_post("/api/1/player/stop", handle_player_stop)
    # NOTE: Catch-all last so the specific routes win
    app.router.add_route("*", "/api/1/player/{tail:.*}", handle_unknown)

    app.on_shutdown.append(_stop_player)
    return app


async def run_server(host: str, port: int, player: ExternalPlayer | None = None) -> None:
    """Run the HTTP server until cancelled."""
    app = create_app(player)
    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info(f"launchtube player API listening on http://{host}:{port}")

    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await runner.cleanup()
