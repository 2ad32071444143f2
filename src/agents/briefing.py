"""
Route Briefing Agent - driver briefings for planned routes.

This agent:
- Summarises a route's stops and loads for the assigned driver
- Flags near-full trucks, worn trucks and empty plans
- Falls back to a rule-based briefing when no LLM is reachable
"""

import json
from datetime import datetime
from time import time
from typing import Any

from pydantic import BaseModel, Field

from src.agents.base import AgentDecision, BaseAgent
from src.data.models import RouteSummary, RouteType


class RouteBriefing(BaseModel):
    """Briefing handed to a driver before a run."""

    route_id: int
    generated_at: datetime
    source: str  # "llm" or "rules"
    headline: str
    instructions: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class RouteBriefingAgent(BaseAgent):
    """
    Route Briefing Agent.

    Uses LLM for:
    - Writing plain-language stop-by-stop instructions
    - Highlighting handling concerns the planner may have missed
    """

    def __init__(self, **kwargs: Any) -> None:
        """Initialize the route briefing agent."""
        super().__init__(agent_name="route_briefing", **kwargs)

        fleet_config = self.config_manager.business_config.get("fleet", {})
        self.condition_warning_threshold = fleet_config.get("condition_warning_threshold", 3)
        self.utilisation_warning_pct = fleet_config.get("utilisation_warning_percentage", 90)

    def execute(self, summary: RouteSummary) -> RouteBriefing:
        """
        Produce a briefing for a route.

        Args:
            summary: Route plan from RouteScheduler.summarize()

        Returns:
            RouteBriefing, LLM-written when possible
        """
        start_time = time()
        route = summary.route
        warnings = self._check_warnings(summary)
        context = self._build_route_context(summary)

        prompt = f"""Write a short briefing for the volunteer driver of this route.

Route Details:
{json.dumps(context, indent=2, default=str)}

Known warnings:
{json.dumps(warnings)}

Format your response as JSON:
{{
    "headline": "<one sentence>",
    "instructions": ["<stop-by-stop instruction>"],
    "warnings": ["<additional warning>"]
}}
"""

        try:
            response_data = self.parse_llm_json(self.call_llm(prompt))
            headline = str(response_data.get("headline") or self._headline(summary))
            instructions = [str(i) for i in response_data.get("instructions", [])]
            warnings += [str(w) for w in response_data.get("warnings", []) if w not in warnings]
            source = "llm"
        except Exception as e:
            self.logger.warning("briefing_llm_unavailable", route_id=route.route_id, error=str(e))
            headline = self._headline(summary)
            instructions = self._rule_based_instructions(summary)
            source = "rules"

        briefing = RouteBriefing(
            route_id=route.route_id,
            generated_at=datetime.now(),
            source=source,
            headline=headline,
            instructions=instructions,
            warnings=warnings,
        )

        self.log_decision(
            AgentDecision(
                timestamp=datetime.now(),
                agent_name=self.agent_name,
                decision_type="route_briefing",
                input_data={"route_id": route.route_id},
                reasoning=f"Briefing generated from {source}",
                confidence=0.8 if source == "llm" else 1.0,
                output_data={"instructions": len(instructions), "warnings": warnings},
                tools_used=["llm_briefing"] if source == "llm" else ["rule_based_briefing"],
                execution_time_seconds=time() - start_time,
            )
        )
        return briefing

    def _build_route_context(self, summary: RouteSummary) -> dict[str, Any]:
        """Build context dictionary for the LLM."""
        return {
            "route_id": summary.route.route_id,
            "date": summary.route.route_date.isoformat(),
            "type": summary.route.route_type.value,
            "truck": {
                "registration": summary.truck.registration,
                "capacity": summary.truck.capacity,
                "condition_code": summary.truck.condition_code,
            },
            "total_quantity": summary.total_quantity,
            "utilisation_percentage": round(summary.utilisation_percentage, 1),
            "stops": [
                {
                    "address_id": d.address_id,
                    "products": [
                        {"product_id": p.product_id, "quantity": p.quantity}
                        for p in summary.products
                        if p.destination_id == d.destination_id
                    ],
                }
                for d in summary.destinations
            ],
            "linked_donations": len(summary.linked_donation_ids),
        }

    def _headline(self, summary: RouteSummary) -> str:
        verb = "Collection" if summary.route.route_type == RouteType.COLLECT else "Distribution"
        return (
            f"{verb} run on {summary.route.route_date.isoformat()}: "
            f"{len(summary.destinations)} stop(s), {summary.total_quantity}/{summary.truck.capacity} units"
        )

    def _rule_based_instructions(self, summary: RouteSummary) -> list[str]:
        """One instruction per stop (fallback when the LLM fails)."""
        action = "Collect" if summary.route.route_type == RouteType.COLLECT else "Deliver"
        instructions = []
        for index, destination in enumerate(summary.destinations, start=1):
            items = [p for p in summary.products if p.destination_id == destination.destination_id]
            if items:
                load = ", ".join(f"{p.quantity} x product {p.product_id}" for p in items)
                instructions.append(f"Stop {index} (address {destination.address_id}): {action} {load}")
            else:
                instructions.append(f"Stop {index} (address {destination.address_id}): no products planned")
        return instructions

    def _check_warnings(self, summary: RouteSummary) -> list[str]:
        """Check for warning conditions."""
        warnings = []

        if summary.utilisation_percentage >= self.utilisation_warning_pct:
            warnings.append(
                f"Truck is {summary.utilisation_percentage:.0f}% full ({summary.total_quantity}/{summary.truck.capacity})"
            )
        if summary.truck.condition_code >= self.condition_warning_threshold:
            warnings.append(f"Truck {summary.truck.registration} condition code is {summary.truck.condition_code}")
        if not summary.destinations:
            warnings.append("Route has no destinations")
        if summary.route.route_type == RouteType.COLLECT and not summary.linked_donation_ids:
            warnings.append("No donations are linked to this collection route")

        return warnings
