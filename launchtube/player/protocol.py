"""
mpv JSON IPC encoding and decoding.

Commands are newline-delimited JSON objects carrying a request_id. mpv
answers each with {"request_id": N, "error": "success", "data": ...} but
interleaves unrelated event lines ({"event": "..."}) on the same channel,
so decoding is lenient: anything that is not a successful, correlated
response decodes to None and is dropped.

Protocol documentation: https://mpv.io/manual/stable/#json-ipc
"""

import json
from dataclasses import dataclass
from typing import Any, Iterable

# Correlation ids for one poll round. They are reused every round.
POSITION_ID = 1
DURATION_ID = 2
PAUSE_ID = 3
PLAYLIST_POS_ID = 4

POLL_PROPERTIES = {
    POSITION_ID: "time-pos",
    DURATION_ID: "duration",
    PAUSE_ID: "pause",
    PLAYLIST_POS_ID: "playlist-pos",
}


@dataclass(frozen=True)
class Query:
    """A command paired with the request_id its reply will carry."""

    request_id: int
    command: list


@dataclass
class PollResult:
    """Values decoded from one poll round. None means "not reported"."""

    position: float | None = None
    duration: float | None = None
    paused: bool | None = None
    playlist_index: int | None = None


def encode(query: Query) -> str:
    """Encode one query as a single JSON line (without the newline)."""
    return json.dumps({"command": query.command, "request_id": query.request_id})


def encode_batch(queries: Iterable[Query]) -> str:
    """Encode queries as one newline-terminated payload."""
    return "".join(encode(query) + "\n" for query in queries)


def poll_queries() -> list[Query]:
    """The four property queries sent every poll round."""
    return [
        Query(request_id, ["get_property", name])
        for request_id, name in POLL_PROPERTIES.items()
    ]


def quit_query() -> Query:
    return Query(1, ["quit"])


def reply_id(line: str) -> int | None:
    """Return the request_id a reply line answers, or None for events and noise.

    Failed commands still count: mpv has answered them.
    """
    try:
        message = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(message, dict):
        return None
    request_id = message.get("request_id")
    if not isinstance(request_id, int) or isinstance(request_id, bool):
        return None
    return request_id


def decode(line: str) -> tuple[int, Any] | None:
    """Decode one reply line into (request_id, data).

    Returns None for blank lines, non-JSON, event lines, failed commands
    (mpv sets "error" to something other than "success") and null data.
    """
    line = line.strip()
    if not line:
        return None
    try:
        message = json.loads(line)
    except json.JSONDecodeError:
        return None

    if not isinstance(message, dict):
        return None

    request_id = message.get("request_id")
    if not isinstance(request_id, int) or isinstance(request_id, bool):
        return None

    error = message.get("error")
    if error is not None and error != "success":
        return None

    data = message.get("data")
    if data is None:
        return None
    return request_id, data


def _is_number(value: Any) -> bool:
    # bool is an int subclass; mpv never sends one for a numeric property
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def collect(lines: Iterable[str]) -> PollResult:
    """Apply every decodable reply line to a PollResult.

    Unknown request ids and values of the wrong type are ignored. A negative
    playlist-pos (mpv uses -1 for "no entry") is treated as absent.
    """
    result = PollResult()
    for line in lines:
        decoded = decode(line)
        if decoded is None:
            continue
        request_id, value = decoded

        if request_id == POSITION_ID and _is_number(value):
            result.position = float(value)
        elif request_id == DURATION_ID and _is_number(value):
            result.duration = float(value)
        elif request_id == PAUSE_ID and isinstance(value, bool):
            result.paused = value
        elif request_id == PLAYLIST_POS_ID and _is_number(value):
            index = int(value)
            if index >= 0:
                result.playlist_index = index
    return result
