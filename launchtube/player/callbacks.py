"""
Outbound completion and progress callbacks.

A CallbackDescriptor carries everything needed to tell a media server
(e.g. Jellyfin) where playback stopped. Delivery is best effort: one
attempt, failures logged, nothing raised to the caller.
"""

import json
import logging
from typing import Any

import httpx

from .models import CallbackDescriptor

logger = logging.getLogger("launchtube.player")

# Placeholder tokens recognised in body templates
POSITION_TOKEN = "${position}"
POSITION_TICKS_TOKEN = "${positionTicks}"
IS_PAUSED_TOKEN = "${isPaused}"

# .NET-style ticks: 100ns units
TICKS_PER_SECOND = 10_000_000


def render_body(template: Any, position: float, paused: bool = False) -> str | None:
    """Serialize a body template and substitute the placeholder tokens.

    Substitution is literal on the serialized JSON, so a token inside a
    string value stays a string: {"ticks": "${positionTicks}"} renders as
    {"ticks": "123400000"}.

    Args:
        template: Any JSON-serializable value, or None for no body.
        position: Elapsed seconds to report.
        paused: Value for ${isPaused}.

    Returns:
        The rendered JSON text, or None when there is no template.
    """
    if template is None:
        return None
    body = json.dumps(template)
    body = body.replace(POSITION_TOKEN, f"{position:.1f}")
    body = body.replace(POSITION_TICKS_TOKEN, str(round(position * TICKS_PER_SECOND)))
    body = body.replace(IS_PAUSED_TOKEN, "true" if paused else "false")
    return body


class CallbackDispatcher:
    """Sends rendered callbacks with httpx.

    The client can be injected for testing; by default a short-lived
    AsyncClient is created per request.
    """

    def __init__(self, timeout: float = 10.0, client: httpx.AsyncClient | None = None):
        """Initialize the dispatcher.

        Args:
            timeout: Request timeout in seconds.
            client: Optional shared client (tests pass one with a mock transport).
        """
        self.timeout = timeout
        self._client = client

    async def dispatch(
        self,
        descriptor: CallbackDescriptor | None,
        position: float,
        paused: bool = False,
    ) -> bool:
        """Deliver one callback.

        Returns:
            True if the target answered with a 2xx status. Every failure
            is logged and reported as False, never raised.
        """
        if descriptor is None or not descriptor.url:
            return False

        method = descriptor.method or "POST"
        headers = dict(descriptor.headers)
        try:
            body = render_body(descriptor.body_template, position, paused)
        except (TypeError, ValueError) as e:
            logger.warning(f"Callback body template for {descriptor.url} is not serializable: {e}")
            return False
        if body is not None:
            headers["Content-Type"] = "application/json"

        logger.debug(f"Executing callback {method} {descriptor.url}")
        logger.debug(f"Callback body: {body}")

        try:
            if self._client is not None:
                response = await self._client.request(
                    method, descriptor.url, headers=headers, content=body, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(
                        method, descriptor.url, headers=headers, content=body
                    )
        except httpx.TimeoutException:
            logger.warning(f"Callback to {descriptor.url} timed out")
            return False
        except httpx.HTTPError as e:
            logger.warning(f"Callback to {descriptor.url} failed: {e}")
            return False

        if not response.is_success:
            logger.warning(
                f"Callback to {descriptor.url} returned status {response.status_code}"
            )
            return False

        logger.debug(f"Callback response: {response.status_code}")
        return True
