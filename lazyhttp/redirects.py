"""Following HTTP redirects hop by hop.

Every hop is a separate :class:`~lazyhttp.response.Response` appended to the
history of the response that started the chain. The originating response
keeps its own connection, status and headers; the final target of a chain
is ``response.history[-1]``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, FrozenSet, Optional
from urllib.parse import urljoin

from . import metrics
from .config import get_settings
from .cookies import CookieJar
from .exceptions import TooManyRedirects

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .response import Response

LOGGER = logging.getLogger(__name__)

REDIRECT_STATUSES: FrozenSet[int] = frozenset({301, 302, 303, 307, 308})


@dataclass(frozen=True)
class RedirectResolver:
    statuses: FrozenSet[int] = REDIRECT_STATUSES
    max_redirects: int = field(default_factory=lambda: get_settings().max_redirects)

    def resolve(self, response: "Response", handle: Any) -> Optional["Response"]:
        """Spawn and evaluate the next hop if ``handle`` answered with a redirect.

        Returns the follow-up response, or ``None`` when the chain stops here.
        """

        origin = response.origin or response
        if not origin.request.allow_redirects:
            return None
        status = handle.status_code()
        if status not in self.statuses:
            return None

        location = None
        hop_cookies = CookieJar()
        for name, value in handle.response_headers():
            lowered = name.lower()
            if lowered == "location" and location is None:
                location = value
            elif lowered == "set-cookie" and value:
                hop_cookies.add_header(value)
        if not location:
            LOGGER.warning("HTTP %s from %s carries no Location header", status, response.request.url)
            return None
        if len(origin._history) >= self.max_redirects:
            raise TooManyRedirects(f"Exceeded {self.max_redirects} redirects starting at {origin.request.url}")

        request = response.request
        target = urljoin(request.url, location)
        cookies = dict(request.cookies or {})
        cookies.update(hop_cookies.as_dict())
        follow_request = request.replace(
            method="GET" if status == 303 else request.method,
            url=target,
            cookies=cookies,
            allow_redirects=False,
        )
        follow = type(response)(
            follow_request,
            executor=response.executor,
            initializers=response.initializers,
            origin=origin,
        )
        follow._cookies.merge(hop_cookies)
        follow._history.extend(origin._history)
        origin._history.append(follow)
        metrics.record_redirect(status)
        LOGGER.debug("Following HTTP %s from %s to %s", status, request.url, follow_request.url)
        follow.evaluate()
        return follow


__all__ = ["REDIRECT_STATUSES", "RedirectResolver"]
