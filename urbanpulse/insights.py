"""LLM-generated city insights with a deterministic rule-based fallback."""

from __future__ import annotations

import json
import re
from typing import Any, Literal, Optional, Sequence

from pydantic import BaseModel, ValidationError

from .config import settings
from .providers.errors import ProviderError
from .providers.gemini_client import GeminiClient
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="insights")

InsightColor = Literal["sky", "emerald", "cyan", "yellow", "red"]

INSIGHT_INSTRUCTION = "Provide up to 4 short actionable insight objects in JSON array format."

_JSON_ARRAY_RE = re.compile(r"(\[\s*\{.*\}\s*\])", re.DOTALL)
_TEMPERATURE_RE = re.compile(r"Temperature: ([0-9.-]+)")
_AQI_RE = re.compile(r"AQI: (\d+)")
_HUMIDITY_RE = re.compile(r"Humidity: ([0-9.-]+)")

DEFAULT_TEMPERATURE = 25.0
DEFAULT_AQI = 50
DEFAULT_HUMIDITY = 50.0


class Insight(BaseModel):
    """A short actionable tip rendered as a dashboard card."""
    icon: str
    title: str
    suggestion: str
    color: InsightColor


class InsightContext(BaseModel):
    """Structured measurements an insight prompt was built from."""
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    wind_speed: Optional[float] = None
    aqi: Optional[int] = None
    pm2_5: Optional[float] = None


def _fmt(value: Any) -> str:
    return "unknown" if value is None else str(value)


def build_insight_prompt(
    context: InsightContext,
    *,
    header_lines: Sequence[str] = (),
    footer_lines: Sequence[str] = (),
    instruction: str = INSIGHT_INSTRUCTION,
) -> str:
    """Render measurements as the line-oriented prompt the insight model expects."""
    lines = [
        *header_lines,
        f"Temperature: {_fmt(context.temperature)}",
        f"Humidity: {_fmt(context.humidity)}",
        f"Wind: {_fmt(context.wind_speed)}",
        f"AQI: {_fmt(context.aqi)}",
        f"PM2_5: {_fmt(context.pm2_5)}",
        *footer_lines,
    ]
    return "\n".join(lines) + "\n\n" + instruction


def parse_insights(raw_text: str, *, limit: int | None = None) -> list[Insight]:
    """
    Extract insight objects from model output.

    The model often wraps the array in markdown fences or prose, so the first
    bracketed array of objects is parsed when present. Items that do not match
    the Insight schema are dropped; a ValueError is raised when nothing usable
    remains.
    """
    limit = limit or settings.max_insights
    text = (raw_text or "").strip()
    match = _JSON_ARRAY_RE.search(text)
    candidate = match.group(1) if match else text

    try:
        parsed = json.loads(candidate)
    except ValueError as exc:
        raise ValueError("Model output is not valid JSON") from exc
    if not isinstance(parsed, list):
        raise ValueError("Model output is not a JSON array")

    out: list[Insight] = []
    for item in parsed[:limit]:
        try:
            out.append(Insight.model_validate(item))
        except ValidationError as exc:
            logger.debug("Dropping malformed insight", extra={"error": str(exc)})
    if not out:
        raise ValueError("Model output contained no valid insights")
    return out


def _read_prompt_context(prompt: str) -> InsightContext:
    """Recover measurements from a prompt rendered by build_insight_prompt."""
    temp = _TEMPERATURE_RE.search(prompt or "")
    aqi = _AQI_RE.search(prompt or "")
    humidity = _HUMIDITY_RE.search(prompt or "")
    try:
        return InsightContext(
            temperature=float(temp.group(1)) if temp else None,
            aqi=int(aqi.group(1)) if aqi else None,
            humidity=float(humidity.group(1)) if humidity else None,
        )
    except ValueError:
        logger.debug("Could not parse measurements from prompt")
        return InsightContext()


def fallback_insights(prompt: str | None = None, context: InsightContext | None = None) -> list[Insight]:
    """Deterministic tips keyed on temperature, AQI and humidity thresholds."""
    ctx = context if context is not None else _read_prompt_context(prompt or "")
    temp = ctx.temperature if ctx.temperature is not None else DEFAULT_TEMPERATURE
    aqi = ctx.aqi if ctx.aqi is not None else DEFAULT_AQI
    humidity = ctx.humidity if ctx.humidity is not None else DEFAULT_HUMIDITY

    out: list[Insight] = []
    if temp >= 30:
        out.append(Insight(icon="sun", title="Hot day",
                           suggestion="Consider shading and cooling measures for outdoor activities.", color="yellow"))
    elif temp <= 5:
        out.append(Insight(icon="cloud", title="Cold day",
                           suggestion="Provide heated shelters and warn users about low temperatures.", color="cyan"))

    if aqi >= 150:
        out.append(Insight(icon="mask", title="Unhealthy air",
                           suggestion="Air quality is poor. Limit outdoor exposure and wear masks.", color="red"))
    elif aqi >= 100:
        out.append(Insight(icon="alert-circle", title="Moderate pollution",
                           suggestion="Air quality is moderate. Sensitive groups should take care.", color="yellow"))
    else:
        out.append(Insight(icon="leaf", title="Good air",
                           suggestion="Air quality is good. Normal activities are fine.", color="emerald"))

    if humidity >= 80:
        out.append(Insight(icon="droplet", title="High humidity",
                           suggestion="High humidity. Ensure hydration and ventilation.", color="sky"))

    return out[:settings.max_insights]


def get_llm_insights(
    prompt: str,
    context: InsightContext | None = None,
    *,
    client: GeminiClient | None = None,
) -> list[Insight]:
    """
    Ask the model for insights, falling back to the rule table on any failure.

    The prompt is sent verbatim. When `context` is given the fallback reads it
    directly instead of re-parsing the prompt text.
    """
    client = client or GeminiClient()
    logger.debug("Generating insights", extra={"model": client.model, "configured": client.configured})

    if not client.configured:
        logger.info("No Gemini API key configured; using heuristic insights")
        return fallback_insights(prompt, context)

    try:
        raw = client.generate(prompt)
    except ProviderError as exc:
        logger.error("Gemini insight generation failed; using heuristic insights", extra={"error": str(exc)})
        return fallback_insights(prompt, context)

    try:
        return parse_insights(raw)
    except ValueError as exc:
        logger.warning("Failed to parse insights from model output; using heuristic insights",
                       extra={"error": str(exc)})
        return fallback_insights(prompt, context)
