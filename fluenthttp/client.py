"""Fluent clients and the call pipeline.

``FluentClient.send`` runs one outbound call end to end::

    before_call -> transport -> on_error (if faulted)
        -> on_redirect (if the response is a redirect) -> after_call

and then, when the redirect is to be followed, sends the next hop as a new
call whose ``redirected_from`` points back at this one.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Self

import httpx
import structlog

from fluenthttp._version import __version__
from fluenthttp.cookies import build_cookie_header
from fluenthttp.core.call import HttpCall
from fluenthttp.core.configurable import HeadersConfigurable
from fluenthttp.core.context import get_current_test
from fluenthttp.core.http_client import HTTPClientFactory
from fluenthttp.core.settings import FluentHttpSettings
from fluenthttp.defaults import get_global_settings
from fluenthttp.exceptions import (
    FluentHttpError,
    HttpCallError,
    HttpNoResponseError,
    HttpTimeoutError,
)
from fluenthttp.hooks import HookEvent, HookManager
from fluenthttp.redirects import forwarded_headers, get_redirect
from fluenthttp.request import Content, FluentRequest
from fluenthttp.response import FluentResponse
from fluenthttp.status_range import is_status_allowed
from fluenthttp.url import Url


if TYPE_CHECKING:
    from fluenthttp.testing import HttpTest


logger = structlog.get_logger(__name__)

DEFAULT_USER_AGENT = f"fluenthttp/{__version__}"


class FluentClient(HeadersConfigurable):
    """A long-lived client owning one ``httpx.AsyncClient`` connection pool.

    Args:
        base_url: Prefix for relative request URLs
        http_client: Ready-made ``httpx.AsyncClient`` to send through
        transport: Transport for a client created here (ignored with ``http_client``)
        settings: Client-level settings; a new level under the global one by default
        name: Name the client is cached under, if any
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        settings: FluentHttpSettings | None = None,
        name: str | None = None,
    ) -> None:
        self.base_url = base_url
        self.name = name
        self.headers = httpx.Headers({"User-Agent": DEFAULT_USER_AGENT})
        self.settings = settings or FluentHttpSettings(
            parent=get_global_settings(), level="client"
        )
        self._http_client = http_client or HTTPClientFactory.create_client(
            transport=transport
        )

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self._http_client

    @property
    def is_closed(self) -> bool:
        return self._http_client.is_closed

    def request(self, *segments: Any) -> FluentRequest:
        """Start a request to ``base_url`` plus the given path segments."""
        request = FluentRequest(self.base_url, client=self)
        request.append_path_segments(*segments)
        return request

    async def aclose(self) -> None:
        """Close the connection pool."""
        await self._http_client.aclose()
        logger.debug("fluent_client_closed", name=self.name, base_url=self.base_url)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    # Pipeline

    async def send(
        self,
        request: FluentRequest,
        verb: str = "GET",
        *,
        content: Content = None,
        content_type: str | None = None,
        redirected_from: HttpCall | None = None,
    ) -> FluentResponse | None:
        """Send ``request`` and follow redirects according to its settings.

        Returns the final response, or ``call.response`` (possibly None) when
        an on-error handler marked the failure as handled.

        Raises:
            HttpCallError: On a disallowed status, a transport failure or a
                failing before-call handler
            asyncio.CancelledError: When the awaiting task is cancelled
        """
        if self.is_closed:
            raise FluentHttpError(
                "Cannot send through a closed client",
                details={"name": self.name, "base_url": self.base_url},
            )

        settings = request.settings
        call = HttpCall(
            request=request,
            verb=verb.upper(),
            url=self._resolve_url(request.url),
            request_body=_body_text(content),
            redirected_from=redirected_from,
        )
        if content_type:
            call.metadata["content_type"] = content_type
        hooks = HookManager(settings.hook_registries())
        test = get_current_test()
        follow = False

        logger.debug(
            "http_call_started",
            verb=call.verb,
            url=str(call.url),
            redirect_count=call.redirect_count,
            intercepted=test is not None,
            category="http",
        )

        try:
            await hooks.emit(HookEvent.BEFORE_CALL, call)
            call.http_request = self._build_http_request(call, content)

            http_response = await self._dispatch(call, test)
            await http_response.aread()
            call.http_response = http_response
            call.response = FluentResponse(http_response, call)
            call.mark_ended()
            self._store_cookies(call)

            if settings.redirects.enabled:
                call.redirect = get_redirect(call, settings.redirects)
            if call.redirect is not None:
                await hooks.emit(HookEvent.ON_REDIRECT, call)
                follow = call.redirect.follow

            status = http_response.status_code
            call.succeeded = status < 400 or is_status_allowed(
                status, settings.allowed_http_status_range
            )
            if not call.succeeded:
                raise HttpCallError(call)
        except asyncio.CancelledError as e:
            call.cancelled = True
            call.exception = e
            logger.debug("http_call_cancelled", verb=call.verb, url=str(call.url))
            raise
        except Exception as e:
            await self._handle_exception(call, e, hooks)
            return call.response
        finally:
            call.mark_ended()
            await hooks.emit(HookEvent.AFTER_CALL, call)
            logger.debug(
                "http_call_completed",
                verb=call.verb,
                url=str(call.url),
                status_code=call.status_code,
                succeeded=call.succeeded,
                cancelled=call.cancelled,
                duration_ms=_duration_ms(call),
                category="http",
            )

        if follow:
            return await self._follow_redirect(call, content, content_type)
        return call.response

    def _resolve_url(self, url: Url) -> Url:
        if url.is_relative and self.base_url:
            return Url(Url.combine(self.base_url, str(url)))
        return url.clone()

    def _build_http_request(self, call: HttpCall, content: Content) -> httpx.Request:
        """Assemble the transport request from the request's current state."""
        request = call.request
        headers = httpx.Headers()
        if request.inherit_client_headers:
            headers.update(self.headers)
        elif "user-agent" in self.headers:
            headers["User-Agent"] = self.headers["user-agent"]
        headers.update(request.headers)

        content_type = call.metadata.get("content_type")
        if content_type and "content-type" not in headers:
            headers["Content-Type"] = content_type

        cookies: dict[str, str] = {}
        if request.cookie_jar is not None:
            # Longest path first; the first cookie of a name wins.
            for cookie in request.cookie_jar.cookies_for(call.url):
                cookies.setdefault(cookie.name, cookie.value)
        cookies.update(request.cookies)
        if cookies:
            headers["Cookie"] = build_cookie_header(cookies.items())

        timeout = httpx.Timeout(request.settings.timeout)
        return httpx.Request(
            call.verb,
            call.url.to_httpx(),
            headers=headers,
            content=content,
            extensions={"timeout": timeout.as_dict()},
        )

    async def _dispatch(self, call: HttpCall, test: HttpTest | None) -> httpx.Response:
        assert call.http_request is not None
        if test is not None:
            return await test.handle_call(call, self._http_client)
        return await self._http_client.send(call.http_request)

    def _store_cookies(self, call: HttpCall) -> None:
        jar = call.request.cookie_jar
        if jar is None or call.http_response is None:
            return
        jar.add_from_response(
            call.http_response.headers.get_list("set-cookie"), str(call.url)
        )

    async def _handle_exception(
        self, call: HttpCall, error: Exception, hooks: HookManager
    ) -> None:
        """Record the failure, run on-error handlers and re-raise unless handled."""
        wrapped = _wrap_exception(call, error)
        call.exception = wrapped
        call.succeeded = False
        call.mark_ended()

        logger.debug(
            "http_call_failed",
            verb=call.verb,
            url=str(call.url),
            status_code=call.status_code,
            error_type=type(error).__name__,
            error=str(error),
            category="http",
        )

        await hooks.emit(HookEvent.ON_ERROR, call)
        if call.exception_handled:
            logger.debug("http_call_error_handled", verb=call.verb, url=str(call.url))
            return
        if wrapped is error:
            raise wrapped
        raise wrapped from error

    async def _follow_redirect(
        self, call: HttpCall, content: Content, content_type: str | None
    ) -> FluentResponse | None:
        redirect = call.redirect
        assert redirect is not None and call.http_request is not None
        previous = call.request
        change_verb = redirect.change_verb_to_get

        next_request = FluentRequest(redirect.url, client=self)
        next_request.settings = previous.settings
        next_request.cookie_jar = previous.cookie_jar
        next_request.inherit_client_headers = False
        next_request.headers = forwarded_headers(
            call.http_request.headers, previous.settings.redirects, change_verb
        )
        next_request.verb = "GET" if change_verb else call.verb

        logger.debug(
            "redirect_followed",
            status_code=call.status_code,
            from_url=str(call.url),
            to_url=str(redirect.url),
            verb=next_request.verb,
            redirect_count=call.redirect_count + 1,
            category="http",
        )

        return await self.send(
            next_request,
            next_request.verb,
            content=None if change_verb else content,
            content_type=None if change_verb else content_type,
            redirected_from=call,
        )

    def __repr__(self) -> str:
        return f"<FluentClient name={self.name!r} base_url={self.base_url!r}>"


def _wrap_exception(call: HttpCall, error: Exception) -> HttpCallError:
    if isinstance(error, HttpCallError):
        return error
    if isinstance(error, httpx.TimeoutException):
        return HttpTimeoutError(call)
    if isinstance(error, httpx.TransportError):
        return HttpNoResponseError(call)
    return HttpCallError(call, f"Call failed: {call.verb} {call.url}: {error}")


def _body_text(content: Content) -> str | None:
    if content is None:
        return None
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return content


def _duration_ms(call: HttpCall) -> float | None:
    if call.duration is None:
        return None
    return round(call.duration.total_seconds() * 1000, 2)
