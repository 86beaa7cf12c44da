"""Provider adapters and their selection from settings."""

import asyncio
import logging
from typing import Callable, Optional

from ..config import ProviderKind, ProviderSettings
from ..network.http import HttpClient
from ..network.resilient import RetryPolicy, Sleep
from .base import ProviderAdapter
from .gemini import GeminiProvider
from .local import LocalProvider
from .openai import OpenAIProvider

logger = logging.getLogger(__name__)


def build_http_client(settings: ProviderSettings,
                      on_retry: Optional[Callable[[str], None]] = None,
                      sleep: Sleep = asyncio.sleep) -> HttpClient:
    return HttpClient(retry_policy=RetryPolicy.from_settings(settings.retry), on_retry=on_retry, sleep=sleep)


def _cloud_provider(kind: ProviderKind, settings: ProviderSettings, http: HttpClient, sleep: Sleep) -> ProviderAdapter:
    if kind is ProviderKind.OPENAI:
        return OpenAIProvider(settings.openai, http)
    return GeminiProvider(settings.gemini, http, sleep=sleep)


def resolve_provider(settings: ProviderSettings,
                     http: Optional[HttpClient] = None,
                     on_retry: Optional[Callable[[str], None]] = None,
                     sleep: Sleep = asyncio.sleep) -> ProviderAdapter:
    """Adapter for the provider selected in settings.

    Credentials are not checked here; each adapter checks them before its
    first request (see ensure_configured).
    """
    http = http or build_http_client(settings, on_retry, sleep)
    if settings.provider is ProviderKind.LOCAL:
        analyzer = _cloud_provider(settings.local.analysis_provider, settings, http, sleep)
        adapter: ProviderAdapter = LocalProvider(settings.local, http, analyzer)
    else:
        adapter = _cloud_provider(settings.provider, settings, http, sleep)
    logger.debug(f"Resolved provider: {adapter.name}")
    return adapter


__all__ = [
    "ProviderAdapter",
    "GeminiProvider",
    "OpenAIProvider",
    "LocalProvider",
    "build_http_client",
    "resolve_provider",
]
