"""Oracle construction from settings."""

import logging

from deskbot.config import Settings
from deskbot.infra.llm.anthropic_oracle import AnthropicOracle
from deskbot.infra.llm.base import ChatOracle
from deskbot.infra.llm.openai_oracle import OpenAIOracle

logger = logging.getLogger(__name__)


def build_oracle(settings: Settings) -> ChatOracle:
    """
    Build the oracle for the configured provider.

    Raises:
        ValueError: If the provider's API key is missing
    """
    match settings.llm_provider:
        case "openai":
            oracle: ChatOracle = OpenAIOracle(
                api_key=settings.openai_api_key or "",
                base_url=settings.openai_base_url,
                timeout_seconds=settings.oracle_timeout_seconds,
                max_retries=settings.oracle_max_retries,
            )
        case _:
            oracle = AnthropicOracle(
                api_key=settings.anthropic_api_key or "",
                timeout_seconds=settings.oracle_timeout_seconds,
                max_retries=settings.oracle_max_retries,
            )

    models = ", ".join(f"{tier.value}={name}" for tier, name in settings.tier_models.items())
    logger.info(f"Oracle initialized: provider={oracle.provider} ({models})")
    return oracle
