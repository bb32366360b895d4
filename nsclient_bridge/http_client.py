from __future__ import annotations

from dataclasses import dataclass
from http import HTTPStatus
import asyncio
import json
import logging
from typing import Any

import aiohttp

from nsclient_bridge.exceptions import ParseError
from nsclient_bridge.logging_utils import TRACE_LEVEL

TIMEOUT_STATUS = HTTPStatus.REQUEST_TIMEOUT


def reason_phrase(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Unknown Status"


@dataclass(frozen=True)
class QueryResult:
    """Outcome of a single HTTP query.

    Exactly one of three shapes: success (``http_code`` 200 with ``body``),
    an HTTP status failure (``http_code`` set, ``body`` empty) or a
    transport failure (``error_code`` set, ``http_code`` 0).
    """

    http_code: int = 0
    error_code: str = ""
    error_text: str = ""
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return not self.error_code and self.http_code == HTTPStatus.OK

    @property
    def reason(self) -> str:
        return reason_phrase(self.http_code) if self.http_code else ""

    def describe(self) -> str:
        if self.error_code:
            return f"{self.error_code} - {self.error_text}"
        return f"HTTP error [{self.http_code}] {self.reason}"

    def json(self, check: str) -> Any:
        try:
            return json.loads(self.body)
        except (UnicodeDecodeError, json.JSONDecodeError) as err:
            raise ParseError(check, [f"invalid JSON body: {err}"]) from err


class HttpQueryClient:
    """Issues GET requests against self-signed NSClient++ agents."""

    def __init__(self, session: aiohttp.ClientSession | None = None) -> None:
        self._session = session
        self._owns_session = session is None
        self.logger = logging.getLogger(self.__class__.__name__)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def query(self, url: str, timeout_s: float) -> QueryResult:
        session = await self._get_session()
        timeout = aiohttp.ClientTimeout(total=timeout_s)
        try:
            async with session.get(url, ssl=False, timeout=timeout) as response:
                if response.status != HTTPStatus.OK:
                    return QueryResult(http_code=response.status)
                body = await response.read()
        except asyncio.TimeoutError:
            return QueryResult(http_code=TIMEOUT_STATUS)
        except aiohttp.ClientError as err:
            return QueryResult(
                error_code=err.__class__.__name__,
                error_text=str(err) or repr(err),
            )
        if self.logger.isEnabledFor(TRACE_LEVEL):
            self.logger.log(TRACE_LEVEL, "Raw payload: %s", body)
        return QueryResult(http_code=HTTPStatus.OK, body=body)

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None
