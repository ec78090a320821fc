# models.py
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


class Ingredient(BaseModel):
    name: str = ""
    inci_name: str = ""
    percentage: float = 0.0
    function: str = ""
    phase: str = ""

    @field_validator("percentage", mode="before")
    @classmethod
    def _lenient_percentage(cls, v: Any) -> float:
        # "5%", " 5.0 ", 5 -> 5.0; decimal commas accepted; anything unreadable -> 0.0
        if isinstance(v, bool) or v is None:
            return 0.0
        if isinstance(v, (int, float)):
            return float(v)
        m = _NUMBER_RE.search(str(v).replace(",", "."))  # "1,5%" -> 1.5
        return float(m.group(0)) if m else 0.0

    @field_validator("name", "inci_name", "function", "phase", mode="before")
    @classmethod
    def _as_text(cls, v: Any) -> str:
        return "" if v is None else str(v)


class FormulaProperties(BaseModel):
    ph: str = ""
    viscosity: str = ""
    stability: str = ""
    shelfLife: str = ""

    @field_validator("ph", "viscosity", "stability", "shelfLife", mode="before")
    @classmethod
    def _as_text(cls, v: Any) -> str:
        return "" if v is None else str(v)


class Formula(BaseModel):
    name: str
    type: str
    description: str = ""
    ingredients: List[Ingredient] = []
    instructions: List[str] = []
    properties: FormulaProperties = Field(default_factory=FormulaProperties)
    claims: List[str] = []
    cost_estimate: str = ""
    mockup_image: Optional[str] = None

    @field_validator("name", "type", "description", "cost_estimate", mode="before")
    @classmethod
    def _as_text(cls, v: Any) -> Any:
        # models sometimes answer 12.5 instead of "$12.50"
        if v is None:
            return ""
        return str(v) if isinstance(v, (int, float)) else v

    @field_validator("instructions", "claims", mode="before")
    @classmethod
    def _as_text_list(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        if not isinstance(v, list):
            return v
        out = []
        for item in v:
            if isinstance(item, dict):
                # {"step": 1, "text": "Heat phase A"} -> "1 Heat phase A"
                item = " ".join(str(x) for x in item.values() if x not in (None, ""))
            out.append(item if isinstance(item, str) else str(item))
        return out

    def total_percentage(self) -> float:
        return sum(ing.percentage for ing in self.ingredients)

    def ingredient_functions(self) -> List[str]:
        return [ing.function for ing in self.ingredients if ing.function]

    def ingredients_by_phase(self) -> List[Tuple[str, List[Ingredient]]]:
        groups: Dict[str, List[Ingredient]] = {}
        for ing in self.ingredients:
            groups.setdefault(ing.phase or "-", []).append(ing)
        return list(groups.items())


class FormulaRequest(BaseModel):
    """Form → results handoff. Mirrors what the form page submits."""
    productDescription: str
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    productType: Optional[str] = None
    targetAudience: Optional[str] = None
    budgetRange: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _legacy_description(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("productDescription") and data.get("description"):
            data = dict(data)
            data["productDescription"] = data.pop("description")
        return data

    @field_validator("productDescription", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> str:
        return ("" if v is None else str(v)).strip()
