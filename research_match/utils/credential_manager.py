"""
Credential Manager Module
Resolves the LLM API credential and provider endpoint from the environment.
"""

import os
from pathlib import Path
from typing import Optional

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

from research_match.exceptions import ConfigurationMissing

logger = structlog.get_logger(__name__)


class ProviderProfile(BaseModel):
    """OpenAI-compatible endpoint and default model for one provider."""

    model_config = ConfigDict(frozen=True)

    name: str
    env_keys: tuple[str, ...]
    base_url: Optional[str]
    default_model: str


# Checked in order; the first provider with a key set wins.
PROVIDERS: tuple[ProviderProfile, ...] = (
    ProviderProfile(
        name="gemini",
        env_keys=("GOOGLE_AI_API_KEY", "GEMINI_API_KEY"),
        base_url="https://generativelanguage.googleapis.com/v1beta/openai/",
        default_model="gemini-2.0-flash",
    ),
    ProviderProfile(
        name="groq",
        env_keys=("GROQ_API_KEY",),
        base_url="https://api.groq.com/openai/v1",
        default_model="llama-3.3-70b-versatile",
    ),
    ProviderProfile(
        name="openai",
        env_keys=("OPENAI_API_KEY",),
        base_url=None,
        default_model="gpt-4o-mini",
    ),
)

GENERIC_KEY = "LLM_API_KEY"


class LLMCredential(BaseModel):
    """Resolved credential. Never logged unmasked."""

    model_config = ConfigDict(frozen=True)

    api_key: str
    provider: str
    base_url: Optional[str] = None
    model: str

    def __repr__(self) -> str:
        return (
            f"LLMCredential(provider={self.provider!r}, model={self.model!r}, "
            f"api_key={CredentialManager.mask_credential(self.api_key)!r})"
        )

    __str__ = __repr__


class CredentialManager:
    """Loads .env and picks the LLM provider credential."""

    def __init__(self, env_file: Path = Path(".env")):
        """
        Initialize credential manager.

        Args:
            env_file: Path to .env file; values already in the process
                environment take precedence over the file
        """
        self.env_file = env_file
        self._load_credentials()

    def _load_credentials(self) -> None:
        """Load existing credentials from .env file."""
        if self.env_file.exists():
            load_dotenv(self.env_file, override=False)
            logger.info("credentials_loaded_from_env", env_file=str(self.env_file))
        else:
            logger.debug("no_env_file_found", env_file=str(self.env_file))

    def get_llm_credential(
        self,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> LLMCredential:
        """
        Resolve the LLM credential.

        LLM_API_KEY is used with the explicit model/base_url (OpenAI defaults
        otherwise). Without it, provider keys are checked in priority order:
        Gemini, Groq, OpenAI.

        Args:
            model: Model override from configuration
            base_url: Endpoint override from configuration

        Returns:
            LLMCredential with provider defaults filled in

        Raises:
            ConfigurationMissing: If no key is set
        """
        generic = os.getenv(GENERIC_KEY, "").strip()
        if generic:
            openai_profile = PROVIDERS[-1]
            credential = LLMCredential(
                api_key=generic,
                provider="custom" if base_url else openai_profile.name,
                base_url=base_url or openai_profile.base_url,
                model=model or openai_profile.default_model,
            )
            logger.info(
                "llm_credential_resolved",
                provider=credential.provider,
                model=credential.model,
                source=GENERIC_KEY,
            )
            return credential

        for profile in PROVIDERS:
            for key in profile.env_keys:
                value = os.getenv(key, "").strip()
                if not value:
                    continue
                credential = LLMCredential(
                    api_key=value,
                    provider=profile.name,
                    base_url=base_url or profile.base_url,
                    model=model or profile.default_model,
                )
                logger.info(
                    "llm_credential_resolved",
                    provider=profile.name,
                    model=credential.model,
                    source=key,
                )
                return credential

        checked = [GENERIC_KEY] + [k for p in PROVIDERS for k in p.env_keys]
        logger.critical("llm_credential_missing", checked=checked)
        raise ConfigurationMissing(
            "No LLM API key configured. Set one of: " + ", ".join(checked)
        )

    def has_llm_credential(self) -> bool:
        """True when get_llm_credential would succeed."""
        keys = [GENERIC_KEY] + [k for p in PROVIDERS for k in p.env_keys]
        return any(os.getenv(k, "").strip() for k in keys)

    @staticmethod
    def mask_credential(value: str, show_chars: int = 3) -> str:
        """
        Mask credential for display in logs.

        Args:
            value: Credential value to mask
            show_chars: Number of characters to show at start

        Returns:
            Masked credential (e.g., "abc***")
        """
        if not value or len(value) <= show_chars:
            return "***"
        return f"{value[:show_chars]}{'*' * (len(value) - show_chars)}"
