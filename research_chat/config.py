"""
Configuration management for Research Chat.
Handles environment variables, provider model settings, quotas and delivery settings.
"""

import os
from typing import Dict, Any, Optional
from dataclasses import dataclass
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Enable LangSmith tracing
if os.getenv("LANGSMITH_API_KEY"):
    os.environ["LANGCHAIN_TRACING_V2"] = "true"
    os.environ.setdefault("LANGCHAIN_ENDPOINT", "https://api.smith.langchain.com")
    os.environ.setdefault("LANGCHAIN_PROJECT", "research-chat")


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class ProviderConfig:
    """Configuration for one generation provider."""
    name: str
    display_name: str
    model_name: str
    temperature: float
    max_tokens: int
    timeout: float
    api_key: Optional[str] = None
    web_search: bool = False


@dataclass
class QuotaConfig:
    """Daily session creation limits."""
    premium_daily_limit: int
    standard_daily_limit: int


@dataclass
class SummaryConfig:
    """Length limits for the deterministic summary fallback."""
    fallback_limit: int
    fallback_cut: int


@dataclass
class DeliveryConfig:
    """SendGrid email delivery configuration."""
    sendgrid_api_key: Optional[str]
    from_email: Optional[str]
    endpoint: str
    timeout: float


@dataclass
class DatabaseConfig:
    """Database configuration."""
    url: str


@dataclass
class APIConfig:
    """API server configuration."""
    host: str
    port: int
    debug: bool


@dataclass
class TracingConfig:
    """LangSmith tracing configuration."""
    api_key: Optional[str]
    project: str
    enabled: bool


class Config:
    """Main configuration class."""

    def __init__(self):
        # Primary provider: OpenAI chat model
        self.primary = ProviderConfig(
            name="openai",
            display_name=os.getenv("PRIMARY_DISPLAY_NAME", "ChatGPT (OpenAI)"),
            model_name=os.getenv("CHATGPT_MODEL", "gpt-5"),
            temperature=float(os.getenv("PRIMARY_TEMPERATURE", "1.0")),
            max_tokens=int(os.getenv("PRIMARY_MAX_TOKENS", "20000")),
            timeout=float(os.getenv("PRIMARY_TIMEOUT", "600")),
            api_key=os.getenv("OPENAI_API_KEY"),
            web_search=_flag("OPENAI_WEB_SEARCH"),
        )

        # Secondary provider and summarizer: Google Gemini
        self.secondary = ProviderConfig(
            name="gemini",
            display_name=os.getenv("SECONDARY_DISPLAY_NAME", "Gemini (Google)"),
            model_name=os.getenv("GEMINI_MODEL", "gemini-2.5-pro"),
            temperature=float(os.getenv("SECONDARY_TEMPERATURE", "0.7")),
            max_tokens=int(os.getenv("SECONDARY_MAX_TOKENS", "8192")),
            timeout=float(os.getenv("SECONDARY_TIMEOUT", "600")),
            api_key=os.getenv("GEMINI_API_KEY", os.getenv("GOOGLE_API_KEY")),
        )
        self.secondary_enabled = _flag("SECONDARY_ENABLED", "true")
        self.summarizer_enabled = _flag("SUMMARIZER_ENABLED", "true")

        self.quota = QuotaConfig(
            premium_daily_limit=int(os.getenv("PREMIUM_DAILY_LIMIT", "20")),
            standard_daily_limit=int(os.getenv("STANDARD_DAILY_LIMIT", "5")),
        )

        self.summary = SummaryConfig(
            fallback_limit=int(os.getenv("SUMMARY_FALLBACK_LIMIT", "650")),
            fallback_cut=int(os.getenv("SUMMARY_FALLBACK_CUT", "640")),
        )

        # Upper bound on fixed-point passes in the content normalizer
        self.normalizer_max_passes = int(os.getenv("NORMALIZER_MAX_PASSES", "8"))

        self.delivery = DeliveryConfig(
            sendgrid_api_key=os.getenv("SENDGRID_API_KEY"),
            from_email=os.getenv("FROM_EMAIL"),
            endpoint=os.getenv("SENDGRID_ENDPOINT", "https://api.sendgrid.com/v3/mail/send"),
            timeout=float(os.getenv("SENDGRID_TIMEOUT", "30")),
        )

        self.database = DatabaseConfig(
            url=os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./research_chat.db")
        )

        self.api = APIConfig(
            host=os.getenv("API_HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", os.getenv("API_PORT", "8000"))),
            debug=_flag("DEBUG"),
        )

        self.tracing = TracingConfig(
            api_key=os.getenv("LANGSMITH_API_KEY"),
            project=os.getenv("LANGCHAIN_PROJECT", "research-chat"),
            enabled=_flag("LANGCHAIN_TRACING_V2"),
        )

    def get_available_services(self) -> Dict[str, bool]:
        """Check which services are configured."""
        return {
            "openai": bool(self.primary.api_key),
            "gemini": bool(self.secondary.api_key) and self.secondary_enabled,
            "sendgrid": bool(self.delivery.sendgrid_api_key and self.delivery.from_email),
            "tracing": bool(self.tracing.api_key),
        }

    def validate_setup(self) -> Dict[str, Any]:
        """Validate the setup and collect warnings and errors."""
        status = {
            "valid": True,
            "warnings": [],
            "errors": [],
        }

        if not self.primary.api_key:
            status["errors"].append("OPENAI_API_KEY is not set; the primary provider cannot run")
            status["valid"] = False

        if self.secondary_enabled and not self.secondary.api_key:
            status["warnings"].append("GEMINI_API_KEY is not set; reports will contain the primary provider only")

        if not self.delivery.sendgrid_api_key or not self.delivery.from_email:
            status["warnings"].append("SENDGRID_API_KEY / FROM_EMAIL not set; email delivery is disabled")

        if self.summary.fallback_cut > self.summary.fallback_limit:
            status["errors"].append("SUMMARY_FALLBACK_CUT must not exceed SUMMARY_FALLBACK_LIMIT")
            status["valid"] = False

        if not self.database.url:
            status["errors"].append("No database URL configured")
            status["valid"] = False

        return status

    def validate(self) -> bool:
        """Raise ValueError when the configuration cannot run a session."""
        validation = self.validate_setup()
        if not validation["valid"]:
            error_msg = "Configuration validation failed:\n"
            for error in validation["errors"]:
                error_msg += f"  - {error}\n"
            raise ValueError(error_msg)
        return True


# Global configuration instance
config = Config()
