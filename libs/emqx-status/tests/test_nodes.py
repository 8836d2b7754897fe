"""Tests for fetching nodes from the management API."""

import json

import httpx
import pytest

from emqx_status import DeserializationError, NodeFetchError, Requester, fetch_nodes


def requester_for(handler) -> Requester:
    return Requester(
        host="10.0.0.1",
        username="key",
        password="secret",
        transport=httpx.MockTransport(handler),
    )


class TestFetchNodes:
    """Test cases for fetch_nodes."""

    @pytest.mark.asyncio
    async def test_fetch_nodes(self):
        """Test a successful node listing."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(
                200,
                json=[
                    {
                        "node": "emqx@broker-0.broker-headless.default.svc.cluster.local",
                        "node_status": "running",
                        "otp_release": "25.3.2-1/13.2.2",
                        "version": "5.1.0",
                        "role": "core",
                        "edition": "Opensource",
                        "uptime": 3600000,
                        "connections": 4,
                        "load1": 0.5,
                    },
                    {"node": "emqx@10.0.0.5", "node_status": "running", "role": "replicant"},
                ],
            )

        async with requester_for(handler) as requester:
            nodes = await fetch_nodes(requester)

        assert seen["method"] == "GET"
        assert seen["url"] == "http://10.0.0.1:18083/api/v5/nodes"
        assert seen["auth"].startswith("Basic ")
        assert len(nodes) == 2
        assert nodes[0].role == "core"
        assert nodes[0].version == "5.1.0"
        assert nodes[0].host == "broker-0.broker-headless.default.svc.cluster.local"
        assert nodes[1].host == "10.0.0.5"
        assert nodes[1].pod_uid is None

    @pytest.mark.asyncio
    async def test_missing_node_status_defaults_to_running(self):
        """Test listed nodes without node_status are treated as running."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{"node": "emqx@broker-0.internal:4370", "role": "core"}])

        async with requester_for(handler) as requester:
            nodes = await fetch_nodes(requester)

        assert nodes[0].is_running

    @pytest.mark.asyncio
    async def test_non_200(self):
        """Test a non-200 answer raises NodeFetchError with status and body."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, text='{"code":"BAD_API_KEY_OR_SECRET"}')

        async with requester_for(handler) as requester:
            with pytest.raises(NodeFetchError) as exc_info:
                await fetch_nodes(requester)

        assert exc_info.value.status_code == 401
        assert "BAD_API_KEY_OR_SECRET" in exc_info.value.body
        assert not isinstance(exc_info.value, DeserializationError)

    @pytest.mark.asyncio
    async def test_transport_error(self):
        """Test a refused connection raises NodeFetchError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with requester_for(handler) as requester:
            with pytest.raises(NodeFetchError) as exc_info:
                await fetch_nodes(requester)

        assert exc_info.value.status_code is None
        assert "connection refused" in str(exc_info.value)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            "not json",
            json.dumps({"node": "emqx@broker-0", "role": "core"}),
            json.dumps([{"role": "core"}]),
        ],
    )
    async def test_malformed_payload(self, payload):
        """Test a 200 answer that is not a node list raises DeserializationError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=payload)

        async with requester_for(handler) as requester:
            with pytest.raises(DeserializationError):
                await fetch_nodes(requester)

    @pytest.mark.asyncio
    async def test_no_retry(self):
        """Test a failed fetch issues exactly one request."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503, text="unavailable")

        async with requester_for(handler) as requester:
            with pytest.raises(NodeFetchError):
                await fetch_nodes(requester)

        assert len(calls) == 1
