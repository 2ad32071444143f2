"""
Base agent class for LLM-assisted logistics agents.

Provides common functionality:
- Lazy Anthropic / OpenAI client initialization
- Primary / fallback model selection from llms.json
- Decision tracking for transparency
"""

import json
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

import structlog
from anthropic import Anthropic
from openai import OpenAI
from pydantic import BaseModel

from src.core.config import AgentLLMConfig, ConfigManager, LLMModelConfig, get_config


class AgentDecision(BaseModel):
    """
    Structured record of something an agent produced.

    Kept so planners can see why a briefing reads the way it does.
    """

    timestamp: datetime
    agent_name: str
    decision_type: str
    input_data: dict[str, Any]
    reasoning: str
    confidence: float  # 0.0 to 1.0
    output_data: dict[str, Any]
    tools_used: list[str]
    execution_time_seconds: float


class BaseAgent(ABC):
    """
    Base class for logistics agents.

    Subclasses implement execute(); call_llm() raises on any provider failure so
    each agent decides its own rule-based fallback.
    """

    def __init__(
        self,
        agent_name: str,
        config_manager: Optional[ConfigManager] = None,
        logger: Optional[structlog.BoundLogger] = None,
    ) -> None:
        """
        Initialize the base agent.

        Args:
            agent_name: Key of the agent in llms.json (e.g., "route_briefing")
            config_manager: Optional config manager (defaults to global instance)
            logger: Optional structured logger
        """
        self.agent_name = agent_name
        self.config_manager = config_manager or get_config()
        self.logger = logger or structlog.get_logger(agent_name=agent_name)
        self.llm_config: AgentLLMConfig = self.config_manager.get_agent_llm_config(agent_name)

        self._anthropic_client: Optional[Anthropic] = None
        self._openai_client: Optional[OpenAI] = None
        self.decision_history: list[AgentDecision] = []

        self.logger.info("agent_initialized", agent_name=agent_name)

    @property
    def anthropic_client(self) -> Anthropic:
        """Get or create Anthropic client."""
        if self._anthropic_client is None:
            api_key = self.config_manager.get_api_key("anthropic")
            if not api_key:
                raise ValueError("ANTHROPIC_API_KEY not set in environment")
            self._anthropic_client = Anthropic(api_key=api_key)
        return self._anthropic_client

    @property
    def openai_client(self) -> OpenAI:
        """Get or create OpenAI client."""
        if self._openai_client is None:
            api_key = self.config_manager.get_api_key("openai")
            if not api_key:
                raise ValueError("OPENAI_API_KEY not set in environment")
            self._openai_client = OpenAI(api_key=api_key)
        return self._openai_client

    def _model(self, use_fallback: bool) -> LLMModelConfig:
        if use_fallback and self.llm_config.fallback_model is not None:
            return self.llm_config.fallback_model
        return self.llm_config.primary_model

    def call_llm(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        use_fallback: bool = False,
        **kwargs: Any,
    ) -> str:
        """
        Send a prompt to the configured model and return the text reply.

        Args:
            prompt: User prompt
            system_prompt: Optional system prompt (defaults to the agent's template)
            use_fallback: Use the fallback model instead of the primary one
            **kwargs: Overrides for temperature / max_tokens

        Returns:
            Response text
        """
        model_config = self._model(use_fallback)
        system_prompt = system_prompt or self.llm_config.system_prompt_template
        call_kwargs = {
            "temperature": model_config.temperature,
            "max_tokens": model_config.max_tokens,
            **kwargs,
        }

        self.logger.info(
            "calling_llm",
            provider=model_config.provider,
            model=model_config.model,
            prompt_length=len(prompt),
        )

        try:
            if model_config.provider == "anthropic":
                response = self.anthropic_client.messages.create(
                    model=model_config.model,
                    system=system_prompt,
                    messages=[{"role": "user", "content": prompt}],
                    timeout=model_config.timeout_seconds,
                    **call_kwargs,
                )
                return response.content[0].text

            if model_config.provider == "openai":
                response = self.openai_client.chat.completions.create(
                    model=model_config.model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": prompt},
                    ],
                    timeout=model_config.timeout_seconds,
                    **call_kwargs,
                )
                return response.choices[0].message.content or ""

            raise ValueError(f"Unsupported provider: {model_config.provider}")

        except Exception as e:
            self.logger.error("llm_call_failed", error=str(e), provider=model_config.provider)
            raise

    @staticmethod
    def parse_llm_json(response: str) -> dict[str, Any]:
        """Parse a JSON object from an LLM reply, tolerating markdown fences."""
        if "```json" in response:
            start = response.find("```json") + 7
            response = response[start : response.find("```", start)]
        elif "```" in response:
            start = response.find("```") + 3
            response = response[start : response.find("```", start)]
        return json.loads(response.strip())

    def log_decision(self, decision: AgentDecision) -> None:
        """Record a decision and log it."""
        self.decision_history.append(decision)
        self.logger.info(
            "agent_decision",
            decision_type=decision.decision_type,
            confidence=decision.confidence,
            execution_time=decision.execution_time_seconds,
        )

    @abstractmethod
    def execute(self, *args: Any, **kwargs: Any) -> Any:
        """Run the agent's primary function."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(agent_name='{self.agent_name}')"
