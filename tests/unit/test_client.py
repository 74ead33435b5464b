"""Tests for FluentClient and the request pipeline."""

import httpx
import pytest
from pydantic import BaseModel

from fluenthttp import (
    FluentClient,
    FluentHttpError,
    FluentRequest,
    HttpCallError,
    HttpNoResponseError,
    HttpParsingError,
    HttpTimeoutError,
)
from fluenthttp.client import DEFAULT_USER_AGENT


class User(BaseModel):
    id: int
    name: str


def json_user(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"id": 1, "name": "Ann"})


class TestRequests:
    """Test request assembly."""

    async def test_base_url_and_segments(self, make_client):
        """Test URL building from the client's base URL."""
        client, transport = make_client(json_user, "https://api.test/v1")

        await client.request("users", 1).set_query_param("expand", True).get()

        assert str(transport.requests[0].url) == "https://api.test/v1/users/1?expand=true"

    async def test_relative_request_url_is_combined(self, make_client):
        """Test that a relative URL on an explicit request is joined to base_url."""
        client, transport = make_client(json_user, "https://api.test/v1/")

        await FluentRequest("users/2", client=client).get()

        assert str(transport.requests[0].url) == "https://api.test/v1/users/2"

    async def test_headers_merge(self, make_client):
        """Test that request headers override client headers."""
        client, transport = make_client(json_user, "https://api.test")
        client.with_headers(x_client="c", x_shared="client")

        await client.request().with_headers({"X-Shared": "request"}).get()

        headers = transport.requests[0].headers
        assert headers["x-client"] == "c"
        assert headers["x-shared"] == "request"
        assert headers["user-agent"] == DEFAULT_USER_AGENT

    async def test_without_header_and_none(self, make_client):
        """Test removing headers."""
        client, transport = make_client(json_user, "https://api.test")
        client.with_header("X-Drop", "1").with_header("X-Gone", "1")

        client.without_header("X-Drop").with_header("X-Gone", None)
        await client.request().get()

        assert "x-drop" not in transport.requests[0].headers
        assert "x-gone" not in transport.requests[0].headers

    async def test_timeout_extension(self, make_client):
        """Test that the effective timeout is applied per request."""
        client, transport = make_client(json_user, "https://api.test")
        client.with_timeout(7)

        await client.request().get()
        await client.request().with_timeout(None).get()

        assert transport.requests[0].extensions["timeout"]["read"] == 7
        assert transport.requests[1].extensions["timeout"]["read"] is None

    async def test_bodies(self, make_client):
        """Test JSON, form and string bodies with their content types."""
        client, transport = make_client(json_user, "https://api.test")

        await client.request().post_json(User(id=3, name="Bo"))
        await client.request().put_url_encoded({"a": 1, "b": None, "c": ["x", "y"]})
        await client.request().patch_string("text")

        first, second, third = transport.requests
        assert first.headers["content-type"] == "application/json"
        assert first.content == b'{"id":3,"name":"Bo"}'
        assert second.method == "PUT"
        assert second.content == b"a=1&c=x&c=y"
        assert second.headers["content-type"] == "application/x-www-form-urlencoded"
        assert third.method == "PATCH"
        assert third.content == b"text"

    async def test_explicit_content_type_wins(self, make_client):
        """Test that a Content-Type header set on the request is kept."""
        client, transport = make_client(json_user, "https://api.test")

        await (
            client.request()
            .with_header("Content-Type", "application/vnd.api+json")
            .post_json({"a": 1})
        )

        assert transport.requests[0].headers["content-type"] == "application/vnd.api+json"


class TestResponses:
    """Test response handling and classification."""

    async def test_get_json_into_model(self, make_client):
        """Test deserializing into a pydantic model."""
        client, _ = make_client(json_user, "https://api.test")

        user = await client.request("users", 1).get_json(User)

        assert user == User(id=1, name="Ann")

    async def test_get_json_parsing_error(self, make_client):
        """Test that an undecodable body raises HttpParsingError."""
        client, _ = make_client(lambda r: httpx.Response(200, text="<html>"), "https://api.test")

        with pytest.raises(HttpParsingError) as exc_info:
            await client.request().get_json()

        assert exc_info.value.expected_format == "JSON"
        assert exc_info.value.status_code == 200

    async def test_model_validation_error_is_parsing_error(self, make_client):
        """Test that model validation failures are parsing errors too."""
        client, _ = make_client(
            lambda r: httpx.Response(200, json={"id": "x"}), "https://api.test"
        )

        with pytest.raises(HttpParsingError):
            await client.request().get_json(User)

    async def test_get_bytes(self, make_client):
        """Test reading the raw body."""
        client, _ = make_client(lambda r: httpx.Response(200, content=b"\x00\x01"), "https://api.test")

        assert await client.request().get_bytes() == b"\x00\x01"

    async def test_error_status_raises_with_response(self, make_client):
        """Test that statuses of 400 and above raise HttpCallError."""
        client, _ = make_client(
            lambda r: httpx.Response(422, json={"error": "invalid"}), "https://api.test"
        )

        with pytest.raises(HttpCallError) as exc_info:
            await client.request("users").post_json({})

        error = exc_info.value
        assert error.status_code == 422
        assert error.get_response_json() == {"error": "invalid"}
        assert "422" in str(error)
        assert error.call.succeeded is False

    @pytest.mark.parametrize("status", [404, 604])
    async def test_allowed_status_range(self, make_client, status):
        """Test statuses allowed by range are successful."""
        client, _ = make_client(lambda r: httpx.Response(status), "https://api.test")
        client.settings.allowed_http_status_range = "400-404,6xx"

        response = await client.request().get()

        assert response.status_code == status
        assert response.call.succeeded is True

    async def test_status_outside_range_raises(self, make_client):
        """Test statuses outside the range still fail."""
        client, _ = make_client(lambda r: httpx.Response(500), "https://api.test")
        client.settings.allowed_http_status_range = "400-404,6xx"

        with pytest.raises(HttpCallError):
            await client.request().get()

    async def test_allow_any_http_status(self, make_client):
        """Test allowing every status on a request."""
        client, _ = make_client(lambda r: httpx.Response(503), "https://api.test")

        response = await client.request().allow_any_http_status().get()

        assert response.status_code == 503

    async def test_request_allow_adds_to_client_range(self, make_client):
        """Test that request-level allowances add to the client's range."""
        client, _ = make_client(
            lambda r: httpx.Response(int(r.url.path.strip("/"))), "https://api.test"
        )
        client.allow_http_status("404")

        assert (await client.request("409").allow_http_status("409").get()).status_code == 409
        assert (await client.request("404").allow_http_status("409").get()).status_code == 404


class TestFailures:
    """Test mapping of transport failures."""

    async def test_timeout_maps_to_http_timeout_error(self, make_client):
        """Test that httpx timeouts become HttpTimeoutError."""

        def slow(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client, _ = make_client(slow, "https://api.test")

        with pytest.raises(HttpTimeoutError) as exc_info:
            await client.request().get()

        assert isinstance(exc_info.value, HttpNoResponseError)
        assert exc_info.value.status_code is None
        assert "timed out" in str(exc_info.value)

    async def test_connect_error_maps_to_no_response(self, make_client):
        """Test that other transport errors become HttpNoResponseError."""

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client, _ = make_client(refuse, "https://api.test")

        with pytest.raises(HttpNoResponseError) as exc_info:
            await client.request().get()

        assert not isinstance(exc_info.value, HttpTimeoutError)
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert exc_info.value.call.exception is exc_info.value

    async def test_closed_client_refuses_to_send(self, make_client):
        """Test sending through a closed client."""
        client, _ = make_client(json_user, "https://api.test")
        await client.aclose()

        assert client.is_closed
        with pytest.raises(FluentHttpError):
            await client.request().get()

    async def test_async_context_manager_closes(self):
        """Test the client as an async context manager."""
        async with FluentClient(
            "https://api.test", transport=httpx.MockTransport(json_user)
        ) as client:
            assert (await client.request().get()).status_code == 200

        assert client.is_closed


class TestCallRecord:
    """Test what the call record captures."""

    async def test_call_fields(self, make_client):
        """Test timing, body and request capture."""
        client, _ = make_client(json_user, "https://api.test")

        response = await client.request("users").post_string("hello")
        call = response.call

        assert call.verb == "POST"
        assert call.request_body == "hello"
        assert call.completed
        assert call.duration is not None
        assert call.status_code == 200
        assert call.redirect_chain == []
        assert call.http_request.method == "POST"
        assert repr(call) == "<HttpCall POST https://api.test/users status=200>"
