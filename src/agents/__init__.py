"""
AI Agents for logistics operations.

This module contains:
- Route Briefing: Driver briefings for planned routes
"""

from .base import AgentDecision, BaseAgent
from .briefing import RouteBriefing, RouteBriefingAgent

__all__ = [
    "AgentDecision",
    "BaseAgent",
    "RouteBriefing",
    "RouteBriefingAgent",
]
