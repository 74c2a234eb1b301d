"""Payload sources fetched over HTTP."""

import logging

from typing import Optional
from urllib.parse import unquote, urlsplit

import requests

from speedbag.utils import LazySource

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60


def filename_from_url(url: str) -> str:
    """Name of the payload file for `url`: its last path segment."""
    name = unquote(urlsplit(url).path.rstrip("/").split("/")[-1])
    if not name:
        raise ValueError(f"Can't derive a file name from '{url}'.")
    return name


class _ResponseStream:
    """Reads the decoded body of a streaming response and closes it afterwards."""

    def __init__(self, response: requests.Response):
        self._response = response
        # undo gzip/deflate transfer encodings, the bag stores the content itself
        response.raw.decode_content = True

    def read(self, size: int = -1) -> bytes:
        return self._response.raw.read(None if size < 0 else size)

    def close(self):
        self._response.close()


def open_url_source(
    url: str,
    session: Optional[requests.Session] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> LazySource:
    """Byte source for the body of `url`, downloaded while the bag streams."""
    get = session.get if session is not None else requests.get

    def opener():
        LOGGER.debug("Downloading %s", url)
        r = get(url, stream=True, allow_redirects=True, timeout=timeout)
        try:
            r.raise_for_status()
        except requests.HTTPError:
            r.close()
            raise
        return _ResponseStream(r)

    return LazySource(opener, name=url)
