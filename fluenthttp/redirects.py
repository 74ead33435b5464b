"""Redirect decisions.

Redirects are followed by the call pipeline rather than by the transport so
that every hop gets its own call record and its own hooks, and so the policy
in ``FluentHttpSettings.redirects`` applies uniformly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog

from fluenthttp.core.call import HttpCallRedirect
from fluenthttp.url import Url


if TYPE_CHECKING:
    from fluenthttp.core.call import HttpCall
    from fluenthttp.core.settings import RedirectSettings


logger = structlog.get_logger(__name__)

REDIRECT_STATUS_CODES = frozenset({301, 302, 303, 307, 308})

# Never copied to a redirect target; cookies are re-derived from the jar.
NEVER_FORWARDED_HEADERS = frozenset({"cookie", "host", "transfer-encoding", "content-length"})


def changes_verb_to_get(status_code: int, verb: str) -> bool:
    """Whether following a redirect with this status switches the verb to GET."""
    verb = verb.upper()
    if status_code == 303:
        return verb not in ("GET", "HEAD")
    if status_code in (301, 302):
        return verb == "POST"
    return False


def resolve_location(current: Url, location: str) -> Url:
    """Resolve a Location header against the URL that produced it."""
    target = Url(httpx.URL(str(current)).join(location))
    if not target.fragment and current.fragment:
        target.set_fragment(current.fragment)
    return target


def get_redirect(call: HttpCall, policy: RedirectSettings) -> HttpCallRedirect | None:
    """Build the redirect decision for ``call``, or None if it is not a redirect.

    Callers only ask when redirects are enabled. The decision may still say
    not to follow: when the chain already holds ``max_auto_redirects`` hops,
    or when the target downgrades https to http without permission.
    """
    response = call.response
    if response is None or response.status_code not in REDIRECT_STATUS_CODES:
        return None
    location = response.headers.get("location")
    if not location:
        return None

    target = resolve_location(call.url, location)
    redirect = HttpCallRedirect(
        url=target,
        change_verb_to_get=changes_verb_to_get(response.status_code, call.verb),
    )

    if call.redirect_count >= policy.max_auto_redirects:
        redirect.follow = False
        redirect.reason = "max_auto_redirects"
    elif (
        call.url.is_secure
        and not target.is_secure
        and not policy.allow_secure_to_insecure
    ):
        redirect.follow = False
        redirect.reason = "secure_to_insecure"

    if not redirect.follow:
        logger.debug(
            "redirect_not_followed",
            url=str(call.url),
            location=str(target),
            reason=redirect.reason,
            redirect_count=call.redirect_count,
            category="http",
        )
    return redirect


def forwarded_headers(
    headers: httpx.Headers, policy: RedirectSettings, change_verb_to_get: bool
) -> httpx.Headers:
    """Headers to carry from the original request to the redirect target."""
    if not policy.forward_headers:
        return httpx.Headers()
    forward_auth = policy.forward_authorization_header
    forwarded: list[tuple[str, str]] = []
    for name, value in headers.multi_items():
        key = name.lower()
        if key in NEVER_FORWARDED_HEADERS:
            continue
        if key == "authorization" and not forward_auth:
            continue
        if change_verb_to_get and key.startswith("content-"):
            continue
        forwarded.append((name, value))
    return httpx.Headers(forwarded)
