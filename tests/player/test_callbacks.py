"""Tests for outbound callback rendering and delivery."""

import json

import httpx
import pytest

from launchtube.player import CallbackDescriptor, CallbackDispatcher, render_body


class TestRenderBody:
    """Tests for body template rendering."""

    def test_position_and_ticks(self):
        """Position renders with one decimal, ticks as 100ns units."""
        body = render_body({"pos": "${position}", "ticks": "${positionTicks}"}, 12.34)
        data = json.loads(body)
        assert data["pos"] == "12.3"
        assert int(data["ticks"]) == 123400000

    def test_substitution_is_literal(self):
        """Tokens are replaced inside the serialized JSON text."""
        body = render_body({"ticks": "${positionTicks}"}, 1.0)
        assert body == '{"ticks": "10000000"}'

    def test_ticks_rounded_to_nearest(self):
        """Ticks are rounded, not truncated."""
        body = render_body({"t": "${positionTicks}"}, 0.00000006)
        assert json.loads(body)["t"] == "1"

    def test_is_paused_token(self):
        """The pause token renders as true/false."""
        assert json.loads(render_body({"p": "${isPaused}"}, 0, paused=True))["p"] == "true"
        assert json.loads(render_body({"p": "${isPaused}"}, 0))["p"] == "false"

    def test_nested_template(self):
        """Tokens are replaced at any depth."""
        body = render_body({"outer": [{"inner": "at ${position}s"}]}, 5.0)
        assert json.loads(body) == {"outer": [{"inner": "at 5.0s"}]}

    def test_non_token_values_preserved(self):
        """Other values pass through unchanged."""
        body = render_body({"ItemId": "abc", "CanSeek": True, "n": 3}, 1.0)
        assert json.loads(body) == {"ItemId": "abc", "CanSeek": True, "n": 3}

    def test_no_template(self):
        """No template means no body."""
        assert render_body(None, 12.0) is None


def make_dispatcher(handler) -> CallbackDispatcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CallbackDispatcher(timeout=1.0, client=client)


class TestCallbackDispatcher:
    """Tests for HTTP delivery."""

    @pytest.mark.asyncio
    async def test_dispatch_sends_request(self):
        """Method, headers and rendered body are sent."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        dispatcher = make_dispatcher(handler)
        descriptor = CallbackDescriptor(
            url="http://jellyfin.local/Sessions/Playing/Stopped",
            method="POST",
            headers={"X-Emby-Token": "secret"},
            body_template={"ItemId": "42", "PositionTicks": "${positionTicks}"},
        )

        assert await dispatcher.dispatch(descriptor, 2.5) is True
        assert len(seen) == 1
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "http://jellyfin.local/Sessions/Playing/Stopped"
        assert request.headers["X-Emby-Token"] == "secret"
        assert request.headers["Content-Type"] == "application/json"
        assert json.loads(request.content) == {"ItemId": "42", "PositionTicks": "25000000"}

    @pytest.mark.asyncio
    async def test_dispatch_without_body(self):
        """Without a template no body or JSON content type is sent."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        dispatcher = make_dispatcher(handler)
        await dispatcher.dispatch(CallbackDescriptor(url="http://cb.local/done", method="GET"), 1.0)

        assert seen[0].method == "GET"
        assert seen[0].content == b""
        assert "Content-Type" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_dispatch_without_descriptor_is_noop(self):
        """Missing descriptor or url sends nothing."""
        seen = []
        dispatcher = make_dispatcher(lambda request: seen.append(request) or httpx.Response(200))

        assert await dispatcher.dispatch(None, 1.0) is False
        assert await dispatcher.dispatch(CallbackDescriptor(url=None), 1.0) is False
        assert seen == []

    @pytest.mark.asyncio
    async def test_non_2xx_is_logged_not_raised(self, caplog):
        """Error statuses are reported as False."""
        dispatcher = make_dispatcher(lambda request: httpx.Response(500))

        assert await dispatcher.dispatch(CallbackDescriptor(url="http://cb.local"), 1.0) is False
        assert "returned status 500" in caplog.text

    @pytest.mark.asyncio
    async def test_connection_error_is_swallowed(self):
        """Connection failures never reach the caller."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        dispatcher = make_dispatcher(handler)
        assert await dispatcher.dispatch(CallbackDescriptor(url="http://cb.local"), 1.0) is False

    @pytest.mark.asyncio
    async def test_timeout_is_swallowed(self):
        """Timeouts never reach the caller."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        dispatcher = make_dispatcher(handler)
        assert await dispatcher.dispatch(CallbackDescriptor(url="http://cb.local"), 1.0) is False

    @pytest.mark.asyncio
    async def test_unserializable_template_is_swallowed(self):
        """A template json cannot encode is reported as False."""
        seen = []
        dispatcher = make_dispatcher(lambda request: seen.append(request) or httpx.Response(200))
        descriptor = CallbackDescriptor(url="http://cb.local", body_template={"bad": object()})

        assert await dispatcher.dispatch(descriptor, 1.0) is False
        assert seen == []
