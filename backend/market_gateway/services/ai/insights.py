"""AI-generated market text and simulated data (Gemini).

Prompts ask for the Indian market (NSE & BSE). Structured answers use a
responseSchema so the model returns parseable JSON.
"""

from __future__ import annotations

from typing import Any, Dict

from market_gateway.infrastructure.logging.logging import get_logger
from market_gateway.models.errors import UpstreamError, ValidationError

log = get_logger("ai_insights")

JsonDict = Dict[str, Any]

MARKET_NEWS_PROMPT = (
    "Provide a brief, one-paragraph summary of today's key highlights and trends in the Indian stock "
    "market (NSE & BSE). Mention the performance of key indices like NIFTY 50 and SENSEX, and any "
    "notable sector movements."
)

COMPANY_DETAILS_PROMPT = (
    "Provide a brief, one-paragraph summary of the most recent news and developments for the Indian "
    "company: {company}. Focus on the last few weeks."
)

CHART_DATA_PROMPT = (
    "Generate a JSON object containing an array of exactly {points} simulated daily closing stock prices "
    "for the Indian company: {company}. The array should be named \"prices\". Each object in the array "
    "must have a \"date\" (in \"YYYY-MM-DD\" format, sequential, ending today) and a \"price\" (as a number)."
)

TECHNICALS_PROMPT = (
    "For the Indian company {company}, generate a JSON object with simulated technical analysis data. "
    "The object must contain these keys: \"currentPrice\" (a realistic number), \"rsi\" (a number between "
    "20 and 80), \"dma20\" (a number), \"dma50\" (a number), and \"dma200\" (a number)."
)

TOP_PERFORMERS_PROMPT = (
    "List the {count} best performing NIFTY 50 stocks in the most recent trading session as a JSON object "
    "with an array named \"topPerformers\". Each entry must have \"symbol\", \"name\", \"price\" (a number) "
    "and \"percentChange\" (a number)."
)

CHART_DATA_SCHEMA: JsonDict = {
    "type": "OBJECT",
    "properties": {
        "prices": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {"date": {"type": "STRING"}, "price": {"type": "NUMBER"}},
                "required": ["date", "price"],
            },
        }
    },
    "required": ["prices"],
}

TECHNICALS_SCHEMA: JsonDict = {
    "type": "OBJECT",
    "properties": {
        "currentPrice": {"type": "NUMBER"},
        "rsi": {"type": "NUMBER"},
        "dma20": {"type": "NUMBER"},
        "dma50": {"type": "NUMBER"},
        "dma200": {"type": "NUMBER"},
    },
    "required": ["currentPrice", "rsi", "dma20", "dma50", "dma200"],
}

TOP_PERFORMERS_SCHEMA: JsonDict = {
    "type": "OBJECT",
    "properties": {
        "topPerformers": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "symbol": {"type": "STRING"},
                    "name": {"type": "STRING"},
                    "price": {"type": "NUMBER"},
                    "percentChange": {"type": "NUMBER"},
                },
                "required": ["symbol", "name", "price", "percentChange"],
            },
        }
    },
    "required": ["topPerformers"],
}


def require_company_name(company_name: Any) -> str:
    name = str(company_name or "").strip()
    if not name:
        raise ValidationError("Company name is required.")
    return name


def _require_object(result: Any, key: str) -> JsonDict:
    if not isinstance(result, dict) or key not in result:
        raise UpstreamError(f"AI API response is missing '{key}'.", details=result)
    return result


async def market_news(ai: Any) -> JsonDict:
    text = await ai.generate_text(MARKET_NEWS_PROMPT)
    return {"news": text}


async def company_details(ai: Any, company_name: str) -> JsonDict:
    text = await ai.generate_text(COMPANY_DETAILS_PROMPT.format(company=company_name))
    log.info("company_details_generated", company=company_name, chars=len(text))
    return {"details": text}


async def chart_data(ai: Any, company_name: str, points: int = 30) -> JsonDict:
    result = await ai.generate_json(CHART_DATA_PROMPT.format(company=company_name, points=points), CHART_DATA_SCHEMA)
    return _require_object(result, "prices")


async def simulated_technicals(ai: Any, company_name: str) -> JsonDict:
    result = await ai.generate_json(TECHNICALS_PROMPT.format(company=company_name), TECHNICALS_SCHEMA)
    return _require_object(result, "currentPrice")


async def top_performers(ai: Any, count: int = 5) -> JsonDict:
    result = await ai.generate_json(TOP_PERFORMERS_PROMPT.format(count=count), TOP_PERFORMERS_SCHEMA)
    return _require_object(result, "topPerformers")
