"""Ordered fallback across third-party content APIs.

Lookup commands describe each upstream as a ``ProviderAttempt`` and call
``try_providers``; the first attempt whose JSON passes its validator wins.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

import httpx

logger = logging.getLogger("seabot.commands.providers")

PROVIDER_TIMEOUT = 15

BETABOTZ_BASE = "https://api.betabotz.eu.org/api"
BOTCAHX_BASE = "https://api.botcahx.eu.org/api"

_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
}


@dataclass
class ProviderAttempt:
    name: str
    url: str
    params: dict = field(default_factory=dict)
    validate: Callable[[Any], bool] = bool


@dataclass
class ProviderResult:
    ok: bool
    provider: Optional[str] = None
    payload: Any = None
    reason: str = ""


def http_client(**kwargs) -> httpx.AsyncClient:
    """Default client for provider calls."""
    kwargs.setdefault("timeout", PROVIDER_TIMEOUT)
    kwargs.setdefault("headers", _HEADERS)
    kwargs.setdefault("follow_redirects", True)
    return httpx.AsyncClient(**kwargs)


async def try_providers(client: httpx.AsyncClient, attempts: Sequence[ProviderAttempt]) -> ProviderResult:
    """Try each provider in order; return the first success or the last failure."""
    result = ProviderResult(ok=False, reason="no providers configured")
    for attempt in attempts:
        try:
            resp = await client.get(attempt.url, params=attempt.params)
            if resp.status_code != 200:
                result = ProviderResult(ok=False, provider=attempt.name, reason=f"HTTP {resp.status_code}")
            else:
                payload = resp.json()
                if attempt.validate(payload):
                    logger.debug(f"Provider {attempt.name} succeeded")
                    return ProviderResult(ok=True, provider=attempt.name, payload=payload)
                result = ProviderResult(ok=False, provider=attempt.name, payload=payload, reason="invalid response")
        except httpx.TimeoutException:
            result = ProviderResult(ok=False, provider=attempt.name, reason="timeout")
        except httpx.HTTPError as e:
            result = ProviderResult(ok=False, provider=attempt.name, reason=f"connection error: {e}")
        except ValueError:
            result = ProviderResult(ok=False, provider=attempt.name, reason="response is not JSON")
        logger.info(f"Provider {attempt.name} failed: {result.reason}")
    return result
