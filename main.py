import logging
import time
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError
from starlette.responses import Response

import config
from errors import GenerationFailed, HandoffMissing
from generator import active_provider, generate_formula
from models import FormulaRequest

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent

app = FastAPI(title="FormulaLab", version="1.0")

# Static + templates
app.mount("/static", StaticFiles(directory=BASE_DIR / "static"), name="static")
templates = Jinja2Templates(directory=BASE_DIR / "templates")

EXAMPLE_DESCRIPTIONS = [
    "Create a lightweight anti-aging serum for sensitive skin with vitamin C, hyaluronic acid, and peptides. pH should be around 5.5-6.0.",
    "Develop a rich moisturizing cream for dry skin with ceramides and shea butter. Should have good spreadability and non-greasy finish.",
    "Formulate a gentle cleansing foam for oily skin with salicylic acid and niacinamide. pH around 5.5 for optimal efficacy.",
    "Design a sunscreen lotion SPF 30+ with zinc oxide and titanium dioxide. Should be water-resistant and suitable for daily use.",
]

NO_DESCRIPTION_MSG = "No product description found. Please fill out the form first."

# --- one-shot handoff store (form -> results), read once then gone ---
_HANDOFF_STORE: Dict[str, Dict[str, Any]] = {}

def _purge_stale(now: float) -> None:
    stale = [k for k, v in _HANDOFF_STORE.items() if now - v["ts"] > config.HANDOFF_TTL_SECONDS]
    for k in stale:
        _HANDOFF_STORE.pop(k, None)

def _put_request(req: FormulaRequest, rid: Optional[str] = None) -> str:
    rid = rid or uuid.uuid4().hex
    now = time.time()
    _purge_stale(now)
    _HANDOFF_STORE[rid] = {"payload": req.model_dump(), "ts": now}
    return rid

def _take_request(rid: Optional[str]) -> FormulaRequest:
    now = time.time()
    _purge_stale(now)
    item = _HANDOFF_STORE.pop(rid, None) if rid else None
    if not item:
        raise HandoffMissing(NO_DESCRIPTION_MSG)
    req = FormulaRequest.model_validate(item["payload"])
    if not req.productDescription:
        raise HandoffMissing(NO_DESCRIPTION_MSG)
    return req

def _opt(v: Optional[str]) -> Optional[str]:
    v = (v or "").strip()
    return v or None

# ---------- No-cache headers ----------
@app.middleware("http")
async def no_cache(request: Request, call_next):
    response: Response = await call_next(request)
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
    response.headers["Pragma"] = "no-cache"
    response.headers["Expires"] = "0"
    return response

# ---------- Routes ----------
@app.get("/", response_class=HTMLResponse)
async def index(request: Request):
    return templates.TemplateResponse(request, "index.html", {})

def _render_form(request: Request, description: str = "", error: Optional[str] = None, status_code: int = 200):
    return templates.TemplateResponse(request, "form.html", {
        "description": description,
        "error": error,
        "examples": EXAMPLE_DESCRIPTIONS,
        "max_chars": config.MAX_DESCRIPTION_CHARS,
    }, status_code=status_code)

@app.get("/form", response_class=HTMLResponse)
async def form_page(request: Request):
    return _render_form(request)

@app.post("/form")
async def submit_form(
    request: Request,
    productDescription: str = Form(""),
    productType: str = Form(""),
    targetAudience: str = Form(""),
    budgetRange: str = Form(""),
):
    description = (productDescription or "").strip()
    if not description:
        return _render_form(request, error="Description Required: please enter a product description to generate a formula.", status_code=400)
    if len(description) > config.MAX_DESCRIPTION_CHARS:
        return _render_form(
            request,
            description=description,
            error=f"Description is too long ({len(description)}/{config.MAX_DESCRIPTION_CHARS} characters).",
            status_code=400,
        )

    req = FormulaRequest(
        productDescription=description,
        productType=_opt(productType),
        targetAudience=_opt(targetAudience),
        budgetRange=_opt(budgetRange),
    )
    rid = _put_request(req)
    logger.info("📝 Stored formula request rid=%s (%d chars)", rid, len(description))
    return RedirectResponse(url=f"/results?rid={rid}", status_code=303)

@app.get("/results", response_class=HTMLResponse)
async def results(request: Request, rid: Optional[str] = None):
    ctx: Dict[str, Any] = {"formula": None, "error": None, "error_title": None, "request_data": None}
    try:
        req = _take_request(rid)
        ctx["request_data"] = req
        result = await generate_formula(req)
        ctx["formula"] = result.formula
        ctx["source"] = result.source
    except HandoffMissing as e:
        ctx["error_title"] = "No Formula Generated"
        ctx["error"] = str(e)
    except GenerationFailed as e:
        logger.error("❌ Formula generation failed rid=%s: %s", rid, e)
        ctx["error_title"] = "Generation Failed"
        ctx["error"] = str(e)
    return templates.TemplateResponse(request, "results.html", ctx)

@app.post("/api/formula")
async def formula_api(payload: Dict[str, Any]):
    try:
        req = FormulaRequest.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    if not req.productDescription:
        raise HTTPException(status_code=422, detail="productDescription is required")
    if len(req.productDescription) > config.MAX_DESCRIPTION_CHARS:
        raise HTTPException(status_code=422, detail=f"productDescription exceeds {config.MAX_DESCRIPTION_CHARS} characters")
    try:
        result = await generate_formula(req)
    except GenerationFailed as e:
        raise HTTPException(status_code=502, detail=str(e))
    return JSONResponse({
        "formula": result.formula.model_dump(),
        "source": result.source,
        "strategy": result.strategy,
    })

@app.get("/health")
async def health():
    provider, api_key = active_provider()
    return {"status": "ok", "provider": provider, "has_key": bool(api_key)}


if __name__ == "__main__":
    import os
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
