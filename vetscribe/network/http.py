"""Thin aiohttp wrapper returning fully-read replies."""

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence, Union

import aiohttp

from ..errors import TransportError
from .resilient import RetryPolicy, Sleep, call_with_retry

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"(key=)[^&]+")


def redact(url: str) -> str:
    """Hide API keys passed as query parameters."""
    return _KEY_PATTERN.sub(r"\1***", url)


@dataclass(frozen=True)
class FormField:
    """One part of a multipart/form-data body."""
    name: str
    value: Union[str, bytes]
    filename: Optional[str] = None
    content_type: Optional[str] = None


@dataclass(frozen=True)
class HttpReply:
    """Status, headers and body of a received HTTP response."""
    status: int
    body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8"))

    def json_or_empty(self) -> Dict[str, Any]:
        """Parsed body if it is a JSON object, else {}."""
        try:
            data = self.json()
        except (ValueError, RecursionError, UnicodeDecodeError):
            return {}
        return data if isinstance(data, dict) else {}


def build_form(fields: Sequence[FormField]) -> aiohttp.FormData:
    form = aiohttp.FormData()
    for f in fields:
        form.add_field(f.name, f.value, filename=f.filename, content_type=f.content_type)
    return form


class HttpClient:
    """Issues one logical request, retried on transport failure."""

    def __init__(self,
                 retry_policy: RetryPolicy = RetryPolicy(),
                 on_retry: Optional[Callable[[str], None]] = None,
                 session_factory: Callable[[], aiohttp.ClientSession] = aiohttp.ClientSession,
                 sleep: Sleep = asyncio.sleep):
        """Initialize HTTP client.

        Args:
            retry_policy: Attempts and backoff for transport failures
            on_retry: Receives the user-facing retry warning
            session_factory: Creates the aiohttp session used for one attempt
            sleep: Awaitable sleep between attempts
        """
        self.retry_policy = retry_policy
        self.on_retry = on_retry
        self.session_factory = session_factory
        self.sleep = sleep

    async def request(self,
                      method: str,
                      url: str,
                      *,
                      headers: Optional[Mapping[str, str]] = None,
                      json_body: Any = None,
                      data: Optional[bytes] = None,
                      form: Optional[Sequence[FormField]] = None) -> HttpReply:
        """Send a request and return the reply, whatever its status.

        Raises:
            TransportError: No response was received after all attempts
        """
        async def attempt() -> HttpReply:
            kwargs: Dict[str, Any] = {"headers": dict(headers or {})}
            if json_body is not None:
                kwargs["json"] = json_body
            elif form is not None:
                # FormData can only be serialized once; rebuild it per attempt.
                kwargs["data"] = build_form(form)
            elif data is not None:
                kwargs["data"] = data

            logger.debug(f"{method} {redact(url)}")
            try:
                async with self.session_factory() as session:
                    async with session.request(method, url, **kwargs) as response:
                        body = await response.read()
                        reply_headers = {k.lower(): v for k, v in response.headers.items()}
                        return HttpReply(status=response.status, body=body, headers=reply_headers)
            except (aiohttp.ClientConnectionError, aiohttp.ClientPayloadError, asyncio.TimeoutError) as e:
                raise TransportError(f"{method} {redact(url)} failed: {e}") from e

        reply = await call_with_retry(attempt, self.retry_policy, self.on_retry, self.sleep)
        logger.debug(f"{method} {redact(url)} -> {reply.status} ({len(reply.body)} bytes)")
        return reply
