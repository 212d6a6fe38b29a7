"""
Configuration for the Decision Analysis Orchestrator.

Environment Variables:
    SILICONFLOW_API_KEY - SiliconFlow (primary backend for most roles)
    DEEPSEEK_API_KEY    - DeepSeek
    KIMI_API_KEY        - Moonshot / Kimi
    ZHIPU_API_KEY       - Zhipu GLM
    ALIYUN_API_KEY      - Aliyun DashScope (Qwen)
    BAIDU_API_KEY       - Baidu ERNIE
    ANTHROPIC_API_KEY   - Optional: Claude as last-resort fallback
    TAVILY_API_KEY      - Optional: Tavily web search
    SERPER_API_KEY      - Optional: Serper (Google) web search
    CACHE_TTL_SECONDS   - Optional: result cache lifetime (default: 3600)
    LOG_LEVEL           - Optional: logging level (default: INFO)

Create a .env file in this directory with:

    SILICONFLOW_API_KEY=sk-your-key-here
    TAVILY_API_KEY=tvly-your-key-here
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional


PROVIDER_KEY_ENVS = (
    "SILICONFLOW_API_KEY",
    "DEEPSEEK_API_KEY",
    "KIMI_API_KEY",
    "ZHIPU_API_KEY",
    "ALIYUN_API_KEY",
    "BAIDU_API_KEY",
    "ANTHROPIC_API_KEY",
)


@dataclass
class Config:
    """Application configuration."""

    # Model backends, keyed by the env var each provider reads
    api_keys: Dict[str, str] = field(default_factory=dict)
    model_timeout_seconds: float = 30.0
    model_temperature: float = 0.7
    model_max_tokens: int = 4096

    # Search
    tavily_api_key: Optional[str] = None
    serper_api_key: Optional[str] = None

    # Cache
    cache_ttl_seconds: int = 3600

    # Logging
    log_level: str = "INFO"

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        api_keys = {}
        for env_name in PROVIDER_KEY_ENVS:
            value = os.getenv(env_name)
            if value:
                api_keys[env_name] = value

        return cls(
            api_keys=api_keys,
            model_timeout_seconds=float(os.getenv("MODEL_TIMEOUT_SECONDS", "30")),
            model_temperature=float(os.getenv("MODEL_TEMPERATURE", "0.7")),
            model_max_tokens=int(os.getenv("MODEL_MAX_TOKENS", "4096")),
            tavily_api_key=os.getenv("TAVILY_API_KEY"),
            serper_api_key=os.getenv("SERPER_API_KEY"),
            cache_ttl_seconds=int(os.getenv("CACHE_TTL_SECONDS", "3600")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            api_host=os.getenv("API_HOST", "0.0.0.0"),
            api_port=int(os.getenv("API_PORT", "8000")),
        )

    def validate(self) -> bool:
        """Check that at least one model backend is configured."""
        return bool(self.api_keys)

    def get_api_key(self, env_name: str) -> Optional[str]:
        """Get the key for a provider by the env var it reads."""
        return self.api_keys.get(env_name)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# Global config instance
config = Config.from_env()
