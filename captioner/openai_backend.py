"""OpenAI client construction and mapping of SDK errors onto Captioner's taxonomy."""

import logging
import os
from typing import Optional

from openai import (
    APIConnectionError,
    APIStatusError,
    OpenAI,
)

from .exceptions import (
    CaptionerError,
    ConfigurationError,
    PermanentServiceError,
    TransientServiceError,
)

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

def build_openai_client(config: dict) -> OpenAI:
    """
    Creates an OpenAI client from the configuration.

    The SDK's own retries are disabled; RetryPolicy owns retrying.

    Raises:
        ConfigurationError: If no API key is configured.
    """
    api_key = config.get('openai_api_key') or os.environ.get('OPENAI_API_KEY')
    if not api_key:
        raise ConfigurationError("Set OPENAI_API_KEY (or 'openai_api_key' in the config file) for OpenAI access.")
    kwargs = {
        'api_key': api_key,
        'max_retries': 0,
        'timeout': float(config.get('request_timeout', 120.0)),
    }
    if config.get('api_base_url'):
        kwargs['base_url'] = config['api_base_url']
    logger.info(f"Initializing OpenAI client (base_url={kwargs.get('base_url', 'default')})")
    return OpenAI(**kwargs)

def to_service_error(exc: Exception, context: str) -> Optional[CaptionerError]:
    """
    Maps an OpenAI SDK exception to a TransientServiceError or PermanentServiceError.

    Returns None for exceptions that did not come from the SDK's transport layer.
    """
    if isinstance(exc, APIConnectionError):
        # Also covers APITimeoutError.
        return TransientServiceError(f"{context}: connection failed: {exc}")
    if isinstance(exc, APIStatusError):
        status = exc.status_code
        if status in TRANSIENT_STATUS_CODES:
            return TransientServiceError(f"{context}: HTTP {status}: {exc.message}", status_code=status)
        return PermanentServiceError(f"{context}: HTTP {status}: {exc.message}", status_code=status)
    return None
