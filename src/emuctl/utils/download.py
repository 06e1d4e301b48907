from __future__ import annotations

import shutil
from pathlib import Path
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import urljoin
from urllib.request import HTTPRedirectHandler, Request, build_opener

from ..errors import DownloadError
from .logging import get_logger

_log = get_logger(__name__)

REDIRECT_CODES = (301, 302)
CHUNK_SIZE = 1 << 16


class _NoRedirect(HTTPRedirectHandler):
    """Surface redirects as HTTPError so the caller decides whether to follow them."""

    def redirect_request(self, req, fp, code, msg, headers, newurl):  # type: ignore[no-untyped-def]
        return None


_opener = build_opener(_NoRedirect)


def _get(url: str, timeout: float) -> Any:
    req = Request(url, headers={"User-Agent": "emuctl"})
    return _opener.open(req, timeout=timeout)  # nosec - fixed release URL


def download_file(url: str, dest: str | Path, *, timeout: float = 60.0) -> Path:
    """
    Download *url* to *dest*, following at most one 301/302 redirect.

    The body is streamed into a temporary '.part' file next to *dest* and
    renamed on success, so an interrupted download never leaves a truncated
    package in the cache.

    Args:
        url (str): Source URL.
        dest (str | Path): Target file.
        timeout (float): Socket timeout in seconds.

    Returns:
        Path: *dest*.

    Raises:
        DownloadError: On a non-200 response, a second redirect or a network error.
    """
    dest = Path(dest)
    tmp = dest.with_name(dest.name + ".part")
    target = url

    try:
        for hop in range(2):
            try:
                resp = _get(target, timeout)
            except HTTPError as e:
                location = e.headers.get("Location") if e.headers else None
                if e.code in REDIRECT_CODES and location:
                    e.close()
                    if hop > 0:
                        raise DownloadError(f"Too many redirects while downloading {url}") from e
                    target = urljoin(target, location)
                    _log.debug("Following redirect", code=e.code, location=target)
                    continue
                raise DownloadError(f"Failed to download: {e.code}") from e

            with resp:
                status = resp.getcode()
                if status != 200:
                    raise DownloadError(f"Failed to download: {status}")
                with tmp.open("wb") as f:
                    shutil.copyfileobj(resp, f, CHUNK_SIZE)
            tmp.replace(dest)
            _log.info("Download complete", url=target, dest=str(dest), size=dest.stat().st_size)
            return dest

        raise DownloadError(f"Too many redirects while downloading {url}")
    except URLError as e:
        raise DownloadError(f"Failed to download {target}: {e.reason}") from e
    except OSError as e:
        raise DownloadError(f"Failed to download {target}: {e}") from e
    finally:
        tmp.unlink(missing_ok=True)
