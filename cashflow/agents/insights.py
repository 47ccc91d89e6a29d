"""
AI Insight Agent

DESIGN DECISION: Gemini is an optional extra, never a dependency of the
ledger itself:
- No API key -> no insight, and the UI shows a persistent banner
- Any request or parsing failure -> no insight, logged
- The model only sees the transactions and party names we send it

The result is a small structured report (summary, advice, total volume)
rather than free text, so the UI can lay it out.
"""

import json
from typing import Optional

import google.generativeai as genai
import structlog
from pydantic import ValidationError

from cashflow.config import GeminiSettings, get_settings
from cashflow.models.ledger import InsightReport, Transaction


logger = structlog.get_logger(__name__)


def build_prompt(transactions: list[Transaction], party_names: list[str]) -> str:
    """Prompt asking for a JSON summary of the ledger."""
    payload = json.dumps([tx.to_wire() for tx in transactions], ensure_ascii=False)
    return f"""Analyze the following cash flow transactions between parties: {', '.join(party_names)}.

In each transaction, type CREDIT means the "from" party is owed the amount by the "to" party,
and type DEBIT means the "from" party paid back what it owed.

Transactions: {payload}

Provide a concise summary of the financial relationship, identify who owes the most,
and give one piece of friendly financial advice.

Respond with ONLY a JSON object in this exact format:
{{"summary": "...", "advice": "...", "totalVolume": 0}}"""


def parse_report(text: str) -> Optional[InsightReport]:
    """Pull the JSON object out of a model response."""
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        return None
    try:
        return InsightReport.model_validate(json.loads(text[start:end]))
    except (ValueError, ValidationError):
        return None


class InsightAgent:
    """
    Asks Gemini for a short natural-language read of the ledger.

    RESPONSIBILITIES:
    - Summarize who owes whom
    - Offer one piece of advice

    BOUNDARIES:
    - NEVER changes ledger state
    - NEVER raises to the caller
    """

    def __init__(self, settings: Optional[GeminiSettings] = None, model=None):
        """
        Args:
            settings: Gemini settings (defaults to the global settings)
            model: Pre-built model object; tests pass a double here
        """
        self._settings = settings or get_settings().gemini
        self._model = model
        if self._model is None and self._settings.is_configured:
            self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
                "response_mime_type": "application/json",
            }
        )

    @property
    def api_key_missing(self) -> bool:
        return self._model is None

    async def generate(
        self,
        transactions: list[Transaction],
        party_names: list[str],
    ) -> Optional[InsightReport]:
        """
        Generate insights for the given ledger.

        Returns None ("no insight available") when there is nothing to
        analyze, no API key, or the request fails.
        """
        if not transactions:
            return None

        if self._model is None:
            logger.warning("insights_skipped", reason="GEMINI_API_KEY is missing")
            return None

        prompt = build_prompt(transactions, party_names)
        try:
            response = await self._model.generate_content_async(prompt)
            text = (response.text or "").strip()
        except Exception as e:
            logger.error("insights_request_failed", error=str(e))
            return None

        report = parse_report(text)
        if report is None:
            logger.warning("insights_unparseable", response=text[:200])
        return report
