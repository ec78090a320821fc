import copy
import json
import logging
import re
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError

from models import Formula

# Recovery chain for LLM replies that should be one JSON object but often
# arrive wrapped in prose or Markdown fences. Kept free of FastAPI so tests
# can import it directly.

logger = logging.getLogger(__name__)

DEFAULT_FORMULA: Dict[str, Any] = {
    "name": "Custom Formula",
    "type": "Beauty Product",
    "description": "A balanced base formulation generated when the AI response could not be read.",
    "ingredients": [
        {"name": "Aqua (Water)", "inci_name": "Aqua", "percentage": 65.0, "function": "solvent", "phase": "A"},
        {"name": "Glycerin", "inci_name": "Glycerin", "percentage": 8.0, "function": "humectant", "phase": "A"},
        {"name": "Zinc Oxide", "inci_name": "Zinc Oxide", "percentage": 15.0, "function": "UV filter", "phase": "B"},
        {"name": "Niacinamide", "inci_name": "Niacinamide", "percentage": 4.0, "function": "active", "phase": "D"},
        {"name": "Caprylic/Capric Triglyceride", "inci_name": "Caprylic/Capric Triglyceride", "percentage": 5.0, "function": "emollient", "phase": "B"},
        {"name": "Phenoxyethanol", "inci_name": "Phenoxyethanol", "percentage": 1.0, "function": "preservative", "phase": "D"},
        {"name": "Xanthan Gum", "inci_name": "Xanthan Gum", "percentage": 2.0, "function": "thickener", "phase": "C"},
    ],
    "instructions": [
        "Heat Phase A (water phase) to 70°C while stirring gently",
        "In separate container, heat Phase B (oil phase) to 70°C",
        "Slowly add Phase B to Phase A while homogenizing at high speed",
        "Cool mixture to 40°C while stirring continuously",
        "Add Phase C (thickener) and mix until uniform",
        "At 30°C, add Phase D (actives and preservatives) one by one",
        "Continue cooling to room temperature while stirring",
        "Check pH and adjust if needed (target 5.5-6.0)",
        "Let mixture rest for 24h before final quality check",
    ],
    "properties": {"ph": "5.5-6.0", "viscosity": "Medium", "stability": "Stable for 24 months", "shelfLife": "24 months"},
    "claims": ["Suitable for sensitive skin", "Fragrance-free formula", "Non-greasy finish", "Professional formulation"],
    "cost_estimate": "$12.50",
}

_FENCE_OPEN_RE = re.compile(r"^\s*```(?:json|JSON)?[ \t]*\n?")
_FENCE_CLOSE_RE = re.compile(r"\n?```\s*$")
# shortest match on purpose: a greedy {...} would be the same span as the first/last brace slice below
_OBJECT_RE = re.compile(r"\{[\s\S]*?\}")


def default_formula() -> Dict[str, Any]:
    return copy.deepcopy(DEFAULT_FORMULA)


def strip_code_fences(text: str) -> str:
    cleaned = _FENCE_OPEN_RE.sub("", text, count=1)
    cleaned = _FENCE_CLOSE_RE.sub("", cleaned, count=1)
    return cleaned.strip()


def _loads_object(s: str) -> Optional[Dict[str, Any]]:
    try:
        obj = json.loads(s)
    except (ValueError, TypeError):
        return None
    return obj if isinstance(obj, dict) else None


def extract_formula_json(text: Any) -> Tuple[Dict[str, Any], str]:
    """Recover one JSON object from free-text model output.

    Steps, each tried only after the previous one fails:
      1. strip Markdown fences and trim, then parse   -> "direct"
      2. regex the first {...} span of the cleaned text -> "regex"
         (shortest match, so only flat objects survive this step)
      3. slice raw text between first '{' and last '}'  -> "slice"
      4. fixed default formula                          -> "fallback"

    Never raises. Malformed JSON is not repaired.
    """
    if not isinstance(text, str) or not text.strip():
        logger.warning("⚠️ Empty or non-text model reply, using default formula")
        return default_formula(), "fallback"

    cleaned = strip_code_fences(text)
    obj = _loads_object(cleaned)
    if obj is not None:
        return obj, "direct"

    m = _OBJECT_RE.search(cleaned)
    if m:
        obj = _loads_object(m.group(0))
        if obj is not None:
            return obj, "regex"

    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        obj = _loads_object(text[start:end + 1])
        if obj is not None:
            return obj, "slice"

    logger.warning("⚠️ Could not recover JSON from model reply (%d chars), using default formula", len(text))
    return default_formula(), "fallback"


def coerce_formula(obj: Dict[str, Any]) -> Formula:
    """Validate an extracted object, filling gaps from the default template."""
    base = default_formula()
    merged = {k: v for k, v in obj.items() if v not in (None, "", [], {})} if isinstance(obj, dict) else {}
    if isinstance(merged.get("properties"), dict):
        merged["properties"] = {**base["properties"], **merged["properties"]}
    data = {**base, **merged}
    try:
        return Formula.model_validate(data)
    except ValidationError as e:
        bad = {err["loc"][0] for err in e.errors() if err.get("loc")}
        logger.warning("⚠️ Formula fields failed validation, using template values for: %s", sorted(map(str, bad)))
        for key in bad:
            if key in base:
                data[key] = base[key]
            else:
                data.pop(key, None)
    try:
        return Formula.model_validate(data)
    except ValidationError as e:
        logger.warning("⚠️ Formula failed validation, using default formula: %s", e.error_count())
        return Formula.model_validate(base)
