"""AI Agents package."""

from cashflow.agents.insights import InsightAgent, build_prompt, parse_report

__all__ = [
    "InsightAgent",
    "build_prompt",
    "parse_report",
]
