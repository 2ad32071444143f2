"""
Configuration management for the food-bank logistics core.

Handles loading and accessing:
- Business configuration (config.yaml), including the logistics section
- LLM configuration (llms.json) for the briefing agent
- Environment variables
"""

import json
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMModelConfig(BaseModel):
    """Configuration for a specific LLM model."""

    provider: str
    model: str
    temperature: float = 0.2
    max_tokens: int = 1024
    timeout_seconds: int = 60


class AgentLLMConfig(BaseModel):
    """LLM configuration for a specific agent."""

    primary_model: LLMModelConfig
    fallback_model: Optional[LLMModelConfig] = None
    reasoning: str = ""
    system_prompt_template: str
    tools_enabled: list[str] = Field(default_factory=list)


class RetryPolicy(BaseModel):
    """Bounded retry with exponential backoff, applied to lock contention."""

    max_attempts: int = Field(3, ge=1)
    base_delay_seconds: float = Field(0.05, ge=0)
    max_delay_seconds: float = Field(1.0, ge=0)
    backoff_multiplier: float = Field(2.0, ge=1.0)

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        delay = self.base_delay_seconds * (self.backoff_multiplier ** (attempt - 1))
        return min(delay, self.max_delay_seconds)


class LogisticsSettings(BaseModel):
    """Settings for the scheduling, stock and reconciliation services."""

    intake_zone: str = Field("intake", min_length=1, description="Zone credited by reconciliation")
    lock_timeout_seconds: float = Field(2.0, gt=0, description="Bounded wait per lock")
    retry: RetryPolicy = Field(default_factory=RetryPolicy)


class EnvironmentSettings(BaseSettings):
    """Environment variables configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # LLM Provider API Keys
    anthropic_api_key: Optional[str] = Field(None, alias="ANTHROPIC_API_KEY")
    openai_api_key: Optional[str] = Field(None, alias="OPENAI_API_KEY")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(True, alias="LOG_JSON")


class ConfigManager:
    """
    Central configuration manager for the logistics core.

    Loads and provides access to:
    - Business configuration from config/config.yaml
    - LLM configuration from config/llms.json
    - Environment variables from .env
    """

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        """
        Initialize the configuration manager.

        Args:
            config_dir: Optional path to config directory. Defaults to project root/config.
        """
        if config_dir is None:
            project_root = Path(__file__).parent.parent.parent
            config_dir = project_root / "config"

        self.config_dir = config_dir
        self._business_config: Optional[dict[str, Any]] = None
        self._llm_config: Optional[dict[str, Any]] = None
        self._env_settings: Optional[EnvironmentSettings] = None
        self._logistics_settings: Optional[LogisticsSettings] = None

    @property
    def business_config(self) -> dict[str, Any]:
        """Load and return business configuration from config.yaml."""
        if self._business_config is None:
            config_path = self.config_dir / "config.yaml"
            if not config_path.exists():
                self._business_config = {}
            else:
                with open(config_path, "r") as f:
                    self._business_config = yaml.safe_load(f) or {}
        return self._business_config

    @property
    def llm_config(self) -> dict[str, Any]:
        """Load and return LLM configuration from llms.json."""
        if self._llm_config is None:
            config_path = self.config_dir / "llms.json"
            with open(config_path, "r") as f:
                self._llm_config = json.load(f)
        return self._llm_config

    @property
    def env(self) -> EnvironmentSettings:
        """Load and return environment settings."""
        if self._env_settings is None:
            self._env_settings = EnvironmentSettings()
        return self._env_settings

    def get_logistics_settings(self) -> LogisticsSettings:
        """
        Get the logistics section of the business config.

        Missing keys fall back to the model defaults, so an absent config.yaml
        still yields a usable configuration.
        """
        if self._logistics_settings is None:
            section = self.business_config.get("logistics", {}) or {}
            self._logistics_settings = LogisticsSettings(**section)
        return self._logistics_settings

    def get_agent_llm_config(self, agent_name: str) -> AgentLLMConfig:
        """
        Get LLM configuration for a specific agent.

        Args:
            agent_name: Name of the agent (e.g., "route_briefing")

        Returns:
            AgentLLMConfig with the agent's LLM settings

        Raises:
            KeyError: If agent configuration is not found
        """
        agent_assignments = self.llm_config.get("agent_assignments", {})
        if agent_name not in agent_assignments:
            raise KeyError(f"No LLM configuration found for agent: {agent_name}")

        return AgentLLMConfig(**agent_assignments[agent_name])

    def get_api_key(self, provider: str) -> Optional[str]:
        """
        Get API key for a specific provider.

        Args:
            provider: Provider name ("anthropic" or "openai")

        Returns:
            API key or None if not set
        """
        provider_map = {
            "anthropic": self.env.anthropic_api_key,
            "openai": self.env.openai_api_key,
        }
        return provider_map.get(provider.lower())

    def get_organisation_info(self) -> dict[str, Any]:
        """Get organisation information from business config."""
        return self.business_config.get("organisation", {})


# Global config instance
_config_manager: Optional[ConfigManager] = None


def get_config() -> ConfigManager:
    """
    Get the global configuration manager instance.

    Returns:
        ConfigManager singleton instance
    """
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager
