# ai.py
"""
Room analysis client for DecorAI.
Handles:
- The fixed interior-design instruction sent with each room photo
- Validation of the model's JSON reply into `RoomAnalysis`
- Lenient price coercion for suggested items
- Two providers behind one interface: OpenAI (default) and Gemini

The client is built once at startup (`build_analyzer`) and kept on
`app.state` for the life of the process.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Union

import httpx
from google import genai
from google.genai import types as genai_types
from openai import AsyncOpenAI
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from decorai.settings import Settings

log = logging.getLogger(__name__)


class AnalysisError(Exception):
    """Raised when the model call fails or its reply cannot be used."""


# ===================================================================
# SCHEMAS
# ===================================================================

class AnalysisItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    description: Optional[str] = None
    category: str = "other"
    estimated_price: Optional[Union[str, float, int]] = Field(None, alias="estimatedPrice")
    priority: Optional[str] = None

    def price_value(self) -> Optional[float]:
        return coerce_price(self.estimated_price)


class RoomAnalysis(BaseModel):
    """Structured reply expected from the model. Unknown keys are preserved."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    analysis: str
    suggestions: str
    items: List[AnalysisItem] = Field(default_factory=list)
    color_palette: List[str] = Field(default_factory=list, alias="colorPalette")
    style: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        """The reply as the model sent it: defaults for absent keys are not filled in."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)

    def raw_items(self) -> List[Dict[str, Any]]:
        return [item.model_dump(mode="json", by_alias=True, exclude_unset=True) for item in self.items]

    def total_estimated_cost(self) -> Optional[float]:
        prices = [p for p in (item.price_value() for item in self.items) if p is not None]
        return round(sum(prices), 2) if prices else None


# ===================================================================
# PROMPTS & PARSING
# ===================================================================

ANALYSIS_PROMPT = """You are a specialist interior designer. Analyze this photo of a room and give decoration suggestions based on the following user request: "{user_request}".

Reply in JSON with the following structure:
{{
  "analysis": "Detailed analysis of the current room",
  "suggestions": "Specific decoration suggestions",
  "items": [
    {{
      "name": "Item name",
      "description": "Detailed description",
      "category": "Category (furniture, lighting, decor, etc)",
      "estimatedPrice": "Estimated price in Brazilian reais",
      "priority": "high/medium/low"
    }}
  ],
  "colorPalette": ["#hex1", "#hex2", "#hex3"],
  "style": "Suggested style (modern, minimalist, industrial, etc)"
}}"""

VARIATION_PROMPT = """Based on this design analysis: {analysis_json},
create a variation with the theme: "{variation}".

Return JSON with the same structure as the original analysis."""

_PRICE_RE = re.compile(r"[-+]?\d[\d.,]*")


def build_analysis_prompt(user_request: str) -> str:
    return ANALYSIS_PROMPT.format(user_request=user_request)


def build_variation_prompt(original_analysis: Dict[str, Any], variation: str) -> str:
    return VARIATION_PROMPT.format(
        analysis_json=json.dumps(original_analysis, ensure_ascii=False),
        variation=variation,
    )


def _is_grouped(int_part: str, sep: str) -> bool:
    """True for digit runs like "1.500.000": a 1-3 digit head, then 3-digit groups."""
    groups = int_part.split(sep)
    return (
        all(g.isdigit() for g in groups)
        and 1 <= len(groups[0]) <= 3
        and all(len(g) == 3 for g in groups[1:])
    )


def coerce_price(raw: Any) -> Optional[float]:
    """
    Turns a model-supplied price into a float, or None when it is not a number.

    Accepts plain numbers, a leading currency symbol, and both decimal styles:
    "R$ 1.500,00" and "150,50" (comma decimals) as well as "1,299.99" (point
    decimals). When both marks appear, the last one is the decimal mark. A
    lone separator followed by exactly three digits ("1.500", "1,500") could
    be either, so it gives None. A range keeps its lower bound.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    text = re.sub(r"^[^\d+\-]+", "", str(raw).strip())  # currency prefix
    match = _PRICE_RE.match(text)
    if not match:
        return None

    token = match.group(0).rstrip(".,")
    sign = ""
    if token[0] in "+-":
        sign, token = token[0], token[1:]

    if "." in token and "," in token:
        decimal = "," if token.rfind(",") > token.rfind(".") else "."
        thousands = "." if decimal == "," else ","
        int_part, _, frac = token.rpartition(decimal)
        if not _is_grouped(int_part, thousands) or not frac.isdigit():
            return None
        number = f"{int_part.replace(thousands, '')}.{frac}"
    elif "." in token or "," in token:
        sep = "," if "," in token else "."
        parts = token.split(sep)
        if len(parts) == 2 and parts[1] and len(parts[1]) != 3:
            number = f"{parts[0]}.{parts[1]}"
        elif len(parts) > 2 and _is_grouped(token, sep):
            number = "".join(parts)
        else:
            return None
    else:
        number = token
    return float(sign + number)


def parse_analysis(text: Optional[str]) -> RoomAnalysis:
    """Parses the model reply. Empty, non-JSON or wrongly shaped replies raise AnalysisError."""
    if not text or not text.strip():
        raise AnalysisError("The AI returned an empty response")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise AnalysisError(f"The AI response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise AnalysisError("The AI response is not a JSON object")
    try:
        return RoomAnalysis.model_validate(data)
    except ValidationError as e:
        raise AnalysisError(f"The AI response has an unexpected shape: {e.error_count()} error(s)") from e


# ===================================================================
# CLIENTS
# ===================================================================

class RoomAnalyzer:
    """Provider-neutral analysis client. Subclasses implement `_complete`."""

    provider = "base"

    def __init__(self, model: str, max_tokens: int, variation_max_tokens: int):
        self.model = model
        self.max_tokens = max_tokens
        self.variation_max_tokens = variation_max_tokens

    async def _complete(self, prompt: str, image_url: Optional[str], max_tokens: int) -> Optional[str]:
        raise NotImplementedError

    async def _call(self, prompt: str, image_url: Optional[str], max_tokens: int) -> str:
        try:
            return await self._complete(prompt, image_url, max_tokens)
        except AnalysisError:
            raise
        except Exception as e:
            log.error(f"{self.provider} completion call failed: {e}", exc_info=True)
            raise AnalysisError(f"The AI service call failed: {e}") from e

    async def analyze_room(self, image_url: str, user_request: str) -> RoomAnalysis:
        """One blocking call: room photo + user request -> validated analysis."""
        text = await self._call(build_analysis_prompt(user_request), image_url, self.max_tokens)
        return parse_analysis(text)

    async def generate_variation(self, original_analysis: Dict[str, Any], variation: str) -> RoomAnalysis:
        """Asks for a themed variation of an existing analysis (text only)."""
        prompt = build_variation_prompt(original_analysis, variation)
        text = await self._call(prompt, None, self.variation_max_tokens)
        return parse_analysis(text)


class OpenAIRoomAnalyzer(RoomAnalyzer):
    provider = "openai"

    def __init__(self, api_key: str, **kwargs):
        super().__init__(**kwargs)
        self.client = AsyncOpenAI(api_key=api_key) if api_key else None

    async def _complete(self, prompt: str, image_url: Optional[str], max_tokens: int) -> Optional[str]:
        if self.client is None:
            raise AnalysisError("OPENAI_API_KEY is not configured")

        if image_url:
            content: Any = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": image_url}},
            ]
        else:
            content = prompt

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": content}],
            max_tokens=max_tokens,
            response_format={"type": "json_object"},
        )
        return response.choices[0].message.content


class GeminiRoomAnalyzer(RoomAnalyzer):
    provider = "gemini"

    def __init__(self, api_key: str, **kwargs):
        super().__init__(**kwargs)
        self.client = genai.Client(api_key=api_key) if api_key else None

    async def _fetch_image(self, image_url: str) -> genai_types.Part:
        # Gemini takes inline bytes; public storage URLs are fetched first.
        async with httpx.AsyncClient(timeout=30.0) as http:
            resp = await http.get(image_url)
            resp.raise_for_status()
        mime_type = resp.headers.get("content-type", "image/jpeg").split(";")[0]
        return genai_types.Part.from_bytes(data=resp.content, mime_type=mime_type)

    async def _complete(self, prompt: str, image_url: Optional[str], max_tokens: int) -> Optional[str]:
        if self.client is None:
            raise AnalysisError("GEMINI_API_KEY is not configured")

        contents: List[Any] = [prompt]
        if image_url:
            contents.append(await self._fetch_image(image_url))

        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=contents,
            config=genai_types.GenerateContentConfig(
                response_mime_type="application/json",
                max_output_tokens=max_tokens,
            ),
        )
        return response.text


def build_analyzer(settings: Settings) -> RoomAnalyzer:
    """Constructs the process-wide analysis client from configuration."""
    provider = settings.AI_PROVIDER.lower()
    limits = dict(max_tokens=settings.AI_MAX_TOKENS, variation_max_tokens=settings.AI_VARIATION_MAX_TOKENS)

    if provider == "openai":
        if not settings.OPENAI_API_KEY:
            log.warning("OPENAI_API_KEY not set. Room analysis will fail until you set it.")
        return OpenAIRoomAnalyzer(api_key=settings.OPENAI_API_KEY, model=settings.OPENAI_MODEL, **limits)
    if provider == "gemini":
        if not settings.GEMINI_API_KEY:
            log.warning("GEMINI_API_KEY not set. Room analysis will fail until you set it.")
        return GeminiRoomAnalyzer(api_key=settings.GEMINI_API_KEY, model=settings.GEMINI_MODEL, **limits)

    raise ValueError(f"Unsupported AI_PROVIDER: {settings.AI_PROVIDER!r} (expected 'openai' or 'gemini')")
