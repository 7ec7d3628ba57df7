"""
Process configuration for the API service.

Values come from the environment (a local ``.env`` file is loaded first via
python-dotenv). Token secrets and the classification credential are required
at startup; the prompt template is checked lazily by the ranking pipeline.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from implementation.classes.enums import UnrankedLabelPolicy
from implementation.misc.errors import ConfigurationMissing

logger = logging.getLogger(__name__)

_REQUIRED_KEYS = ("SECRET_KEY", "SECRET_REFRESH_KEY", "OPENAI_API_KEY")

DEFAULT_OPENAI_MODEL = "gpt-5-mini"
DEFAULT_SENTINEL_VALUE = 999
DEFAULT_STORAGE_TIMEOUT_SECONDS = 10.0
DEFAULT_CLASSIFICATION_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True, slots=True)
class Settings:
    secret_key: str
    secret_refresh_key: str
    openai_api_key: Optional[str]
    openai_model: str = DEFAULT_OPENAI_MODEL
    base_prompt_template: Optional[str] = None
    ranking_sentinel_value: int = DEFAULT_SENTINEL_VALUE
    unranked_label_policy: UnrankedLabelPolicy = UnrankedLabelPolicy.PASS_THROUGH
    storage_timeout_seconds: float = DEFAULT_STORAGE_TIMEOUT_SECONDS
    classification_timeout_seconds: float = DEFAULT_CLASSIFICATION_TIMEOUT_SECONDS
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from environment variables.

        Raises:
            ConfigurationMissing: when a required key is absent or a value
                cannot be parsed.
        """
        load_dotenv()

        missing = [key for key in _REQUIRED_KEYS if not os.getenv(key)]
        if missing:
            raise ConfigurationMissing(f"Missing required configuration: {', '.join(missing)}")

        policy_raw = os.getenv("UNRANKED_LABEL_POLICY", UnrankedLabelPolicy.PASS_THROUGH.value)
        policy = UnrankedLabelPolicy.from_string(policy_raw)
        if policy is None:
            raise ConfigurationMissing(f"Unknown UNRANKED_LABEL_POLICY: {policy_raw!r}")

        return cls(
            secret_key=os.environ["SECRET_KEY"],
            secret_refresh_key=os.environ["SECRET_REFRESH_KEY"],
            openai_api_key=os.environ["OPENAI_API_KEY"],
            openai_model=os.getenv("OPENAI_MODEL", DEFAULT_OPENAI_MODEL),
            base_prompt_template=os.getenv("BASE_PROMPT_TEMPLATE") or None,
            ranking_sentinel_value=_parse_number("RANKING_SENTINEL_VALUE", DEFAULT_SENTINEL_VALUE, int),
            unranked_label_policy=policy,
            storage_timeout_seconds=_parse_number(
                "STORAGE_TIMEOUT_SECONDS", DEFAULT_STORAGE_TIMEOUT_SECONDS, float
            ),
            classification_timeout_seconds=_parse_number(
                "CLASSIFICATION_TIMEOUT_SECONDS", DEFAULT_CLASSIFICATION_TIMEOUT_SECONDS, float
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


def _parse_number(key: str, default, cast):
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigurationMissing(f"{key} must be a number, got {raw!r}")
    if cast is float and value <= 0:
        raise ConfigurationMissing(f"{key} must be positive, got {raw!r}")
    return value


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
