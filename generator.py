import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import httpx
from openai import AsyncOpenAI

import config
from errors import GenerationFailed
from extraction import coerce_formula, default_formula, extract_formula_json
from imagery import select_mockup_image
from models import Formula, FormulaRequest

logger = logging.getLogger(__name__)

FORMULA_JSON_SHAPE = """{
  "name": "Product name",
  "type": "Product category",
  "description": "Brief description",
  "ingredients": [
    {"name": "Ingredient name", "inci_name": "INCI name", "percentage": 5.0, "function": "ingredient function", "phase": "A"}
  ],
  "instructions": ["Step 1", "Step 2", "Step 3"],
  "properties": {"ph": "5.5-6.0", "viscosity": "Medium", "stability": "24 months", "shelfLife": "24 months"},
  "claims": ["Claim 1", "Claim 2"],
  "cost_estimate": "$XX.XX"
}"""


@dataclass
class GenerationResult:
    formula: Formula
    source: str     # demo | gemini | openai
    strategy: str   # demo | direct | regex | slice | fallback


def build_prompt(req: FormulaRequest) -> str:
    return f"""Create a detailed cosmetics formula for: {req.productDescription}.
Product Type: {req.productType or 'Not specified'}
Target Audience: {req.targetAudience or 'General'}
Budget Range: {req.budgetRange or 'Mid-range'}

Please respond with ONLY a valid JSON object (no markdown formatting) with this exact structure:
{FORMULA_JSON_SHAPE}

Use realistic cosmetic ingredients with proper INCI names and realistic percentages that add up to 100%.
"""


def build_demo_formula(req: FormulaRequest) -> Formula:
    """Fixed formula shown when no API key is configured."""
    data = default_formula()
    product_type = (req.productType or "").strip()
    data["name"] = f"{product_type or 'Custom'} Formula"
    data["type"] = product_type or "Beauty Product"
    data["description"] = f"A {product_type.lower() or 'custom'} formulated based on: {req.productDescription}"
    return Formula.model_validate(data)


def active_provider() -> Tuple[str, str]:
    """Return (provider, api_key); key is "" when the provider is not configured."""
    if config.FORMULA_PROVIDER == "openai":
        return "openai", config.OPENAI_API_KEY
    return "gemini", config.GEMINI_API_KEY

# ---------- Outbound calls ----------

async def call_gemini(
    prompt: str,
    api_key: str,
    model: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    model = model or config.GEMINI_MODEL
    url = f"{config.GEMINI_API_BASE}/models/{model}:generateContent"
    body = {"contents": [{"parts": [{"text": prompt}]}]}

    logger.info("🤖 Calling Gemini model=%s", model)
    try:
        async with httpx.AsyncClient(timeout=config.LLM_TIMEOUT_SECS, transport=transport) as client:
            r = await client.post(url, params={"key": api_key}, json=body)
    except httpx.HTTPError as e:
        logger.error("❌ Gemini request failed: %s", e)
        raise GenerationFailed(f"Gemini request failed: {e}") from e

    if r.status_code != 200:
        logger.error("❌ Gemini API error %s: %s", r.status_code, r.text[:500])
        raise GenerationFailed(f"Gemini API error: {r.status_code} - {r.text}", status_code=r.status_code)

    try:
        data: Dict[str, Any] = r.json()
        text = data["candidates"][0]["content"]["parts"][0].get("text") or ""
    except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
        logger.error("❌ Unexpected Gemini response shape: %s", e)
        raise GenerationFailed("Gemini returned no formula text.") from e
    if not text.strip():
        raise GenerationFailed("Gemini returned no formula text.")
    return text


async def call_openai(prompt: str, api_key: str, model: Optional[str] = None) -> str:
    client = AsyncOpenAI(api_key=api_key, timeout=config.LLM_TIMEOUT_SECS)
    logger.info("🤖 Calling OpenAI model=%s", model or config.DEFAULT_OPENAI_MODEL)
    try:
        resp = await client.chat.completions.create(
            model=model or config.DEFAULT_OPENAI_MODEL,
            messages=[
                {"role": "system", "content": "You are a cosmetic chemist. Reply with one JSON object only."},
                {"role": "user", "content": prompt},
            ],
            temperature=0.4,
        )
        text = (resp.choices[0].message.content or "").strip()
    except Exception as e:
        logger.error("❌ OpenAI request failed: %s", e)
        raise GenerationFailed(f"OpenAI request failed: {e}") from e
    if not text:
        raise GenerationFailed("OpenAI returned no formula text.")
    return text

# ---------- Orchestration ----------

async def generate_formula(
    req: FormulaRequest,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> GenerationResult:
    provider, api_key = active_provider()
    logger.info("🔑 Provider=%s has_key=%s key_len=%d", provider, bool(api_key), len(api_key))

    if not api_key:
        logger.warning("⚠️ No %s API key found, using demo formula", provider)
        await asyncio.sleep(max(0.0, config.DEMO_DELAY_SECONDS))
        formula = build_demo_formula(req)
        formula.mockup_image = select_mockup_image(formula.type, formula.ingredient_functions())
        return GenerationResult(formula=formula, source="demo", strategy="demo")

    prompt = build_prompt(req)
    if provider == "openai":
        raw = await call_openai(prompt, api_key)
    else:
        raw = await call_gemini(prompt, api_key, transport=transport)

    obj, strategy = extract_formula_json(raw)
    if strategy != "direct":
        logger.info("🧩 Formula JSON recovered via %s", strategy)
    formula = coerce_formula(obj)
    # generated or not, the mockup always comes from the stock selector
    formula.mockup_image = select_mockup_image(formula.type, formula.ingredient_functions())
    return GenerationResult(formula=formula, source=provider, strategy=strategy)
