"""Shared plumbing for calls to external AI providers.

Every provider call is timed, reported to the metrics backend and has its SDK
exceptions translated into the service's provider errors, so nothing from
``openai`` or ``google`` leaks past the adapters.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import openai

from campus_ai.core.errors import CampusAIError, ProviderError, ProviderTimeout
from campus_ai.observability import get_metrics_backend

logger = logging.getLogger(__name__)


@asynccontextmanager
async def provider_call(
    provider: str,
    operation: str,
    timeout_seconds: float,
) -> AsyncIterator[None]:
    """Wrap a single provider request.

    Args:
        provider: Provider label for metrics and errors (e.g. "openai").
        operation: Operation label (e.g. "chat.completions").
        timeout_seconds: Budget reported in ``ProviderTimeout``.

    Raises:
        ProviderTimeout: The request timed out.
        ProviderError: Any other transport or API failure.
    """
    metrics = get_metrics_backend()
    start_time = time.perf_counter()
    status_code = 500
    try:
        yield
        status_code = 200
    except CampusAIError:
        raise
    except (openai.APITimeoutError, TimeoutError) as exc:
        status_code = 504
        raise ProviderTimeout(provider, timeout_seconds) from exc
    except openai.APIStatusError as exc:
        status_code = exc.status_code
        raise ProviderError(provider, exc.message, status_code=exc.status_code) from exc
    except openai.APIError as exc:
        raise ProviderError(provider, exc.message) from exc
    except Exception as exc:
        raise ProviderError(provider, str(exc) or exc.__class__.__name__) from exc
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000
        metrics.observe_external_api(provider, operation, status_code, duration_ms)
        logger.info(
            "%s API %s status=%s duration_ms=%.2f",
            provider,
            operation,
            status_code,
            duration_ms,
        )
