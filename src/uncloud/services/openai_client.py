"""Shared OpenAI client construction."""

import logging
from typing import Optional

import openai

from uncloud.config import Settings

logger = logging.getLogger(__name__)


def create_openai_client(settings: Settings) -> Optional[openai.AsyncOpenAI]:
    """Return an AsyncOpenAI client, or None when no API key is configured."""
    api_key = settings.openai_api_key.get_secret_value() if settings.openai_api_key else None
    if not api_key:
        logger.warning("OPENAI_API_KEY not set; cloud speech and transcription are disabled")
        return None
    logger.info("OpenAI: Creating AsyncOpenAI client...")
    return openai.AsyncOpenAI(api_key=api_key)


__all__ = ["create_openai_client"]
