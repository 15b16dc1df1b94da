from __future__ import annotations

import urllib.error
import urllib.parse
import urllib.request
from typing import Optional
from .errors import MissingLocationError, NetworkError, NotFoundError, UnexpectedStatusError
from .logging_setup import get_logger

log = get_logger("mindustry.launcher.redirects")

# temporary redirects only; GitHub answers release lookups with 302
REDIRECT_STATUSES = (302, 303, 307)
USER_AGENT = "mindustry-launcher"


class _NoRedirect(urllib.request.HTTPRedirectHandler):
    """Makes urllib hand back the 3xx response instead of following it."""

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        return None


_opener = urllib.request.build_opener(_NoRedirect)


def resolve_redirect(url: str, timeout: float = 30.0, opener: Optional[urllib.request.OpenerDirector] = None) -> str:
    """
    Resolve a single redirect hop and return the target URL.

    Raises NotFoundError on 404, UnexpectedStatusError on any other non-redirect
    status and MissingLocationError when the redirect has no Location header.
    """
    opener = opener or _opener
    req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    log.debug("Resolving redirect: %s", url)
    try:
        with opener.open(req, timeout=timeout) as response:
            status = response.status
            location = response.headers.get("Location")
    except urllib.error.HTTPError as e:
        status = e.code
        location = e.headers.get("Location") if e.headers is not None else None
        e.close()
    except urllib.error.URLError as e:
        raise NetworkError(f"Could not reach {url}: {e.reason}") from e

    if status not in REDIRECT_STATUSES:
        if status == 404:
            raise NotFoundError("Version does not exist.")
        raise UnexpectedStatusError(status)
    if not location:
        raise MissingLocationError(url)
    return urllib.parse.urljoin(url, location)
