from __future__ import annotations

from typing import Any, Dict, List, Optional

from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ..analysis import VisionQuoteAnalyzer
from ..catalog import find_act, search_acts, suggest_acts
from ..config import Settings, load_settings
from ..errors import (
    AnalysisError,
    DuplicateQuoteError,
    KlarityError,
    LinkExpiredError,
    LoginError,
    QuoteNotFoundError,
    QuoteValidationError,
    SessionRequiredError,
    StatusTransitionError,
    UnknownActError,
)
from ..insights import build_act_result, build_landing
from ..logging import get_logger
from ..paths import find_project_root
from ..pricing import price_breakdown
from ..quotes import QuoteDatabase, QuoteDraft, QuoteService
from ..quotes.service import QuoteAnalyzer


LOG = get_logger("frontend")

STATUS_BY_ERROR = (
    (QuoteValidationError, 400),
    (LoginError, 400),
    (SessionRequiredError, 401),
    (QuoteNotFoundError, 404),
    (UnknownActError, 404),
    (StatusTransitionError, 409),
    (DuplicateQuoteError, 409),
    (LinkExpiredError, 410),
    (AnalysisError, 502),
)

MANUAL_SEARCH_HINT = "Analyse impossible. Essayez la recherche manuelle de vos actes."
NOTHING_DETECTED = "Aucun acte détecté sur ce devis."


def _parse_int(value: Optional[str], *, default: int, minimum: int, maximum: int) -> int:
    try:
        parsed = int(value) if value is not None else default
    except (TypeError, ValueError):
        parsed = default
    if parsed < minimum:
        return minimum
    if parsed > maximum:
        return maximum
    return parsed


async def _json_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid JSON body") from exc
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="JSON object expected")
    return body


async def http_error(_: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code)


async def klarity_error(_: Request, exc: KlarityError) -> JSONResponse:
    status = 500
    for cls, code in STATUS_BY_ERROR:
        if isinstance(exc, cls):
            status = code
            break
    return JSONResponse({"error": str(exc)}, status_code=status)


def _draft_from_body(body: Dict[str, Any]) -> QuoteDraft:
    draft = QuoteDraft(
        patient_name=str(body.get("patient_name") or ""),
        patient_email=str(body.get("patient_email") or ""),
    )
    codes = body.get("acts") or []
    if not isinstance(codes, list):
        raise QuoteValidationError("acts must be a list of act codes")
    for code in codes:
        act = find_act(str(code))
        if act is None:
            raise UnknownActError(f"Unknown act code: {code}")
        draft.add_act(act)
    prices = body.get("custom_prices") or {}
    if not isinstance(prices, dict):
        raise QuoteValidationError("custom_prices must be an object")
    for code, value in prices.items():
        draft.set_price(str(code), value)
    channels = body.get("delivery_channels")
    if channels is not None:
        if not isinstance(channels, list):
            raise QuoteValidationError("delivery_channels must be a list")
        draft.delivery_channels = []
        for channel in dict.fromkeys(str(c) for c in channels):
            draft.toggle_channel(channel)
    return draft


def create_app(
    root_dir: Optional[str] = None,
    *,
    settings: Optional[Settings] = None,
    analyzer: Optional[QuoteAnalyzer] = None,
    allow_origins: Optional[List[str]] = None,
) -> Starlette:
    """Create the Starlette app exposing the catalog, quotes and analysis API."""

    project_root = find_project_root(root_dir)
    settings = settings or load_settings(project_root)
    service = QuoteService(QuoteDatabase(root_dir=project_root), settings=settings)
    vision = analyzer or VisionQuoteAnalyzer.from_settings(settings)

    def _require_session() -> None:
        if service.current_user() is None:
            raise SessionRequiredError("Connexion praticien requise")

    def _basket_payload() -> Dict[str, Any]:
        acts = service.basket()
        return {"items": [a.to_dict() for a in acts], "summary": price_breakdown(acts, {})}

    async def health(_: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "db_path": service.db.db_path, "mock": settings.use_mock})

    # ---------------- catalog ----------------
    async def acts(request: Request) -> JSONResponse:
        items = search_acts(request.query_params.get("search"))
        return JSONResponse({"items": [a.to_dict() for a in items], "count": len(items)})

    async def acts_suggest(request: Request) -> JSONResponse:
        qp = request.query_params
        limit = _parse_int(qp.get("limit"), default=5, minimum=1, maximum=50)
        items = suggest_acts(qp.get("q"), limit=limit)
        return JSONResponse({"items": [a.to_dict() for a in items]})

    async def act_detail(request: Request) -> JSONResponse:
        act = find_act(request.path_params["code"])
        if act is None:
            raise HTTPException(status_code=404, detail="Act not found")
        return JSONResponse(build_act_result(act))

    # ---------------- basket ----------------
    async def basket(request: Request) -> JSONResponse:
        if request.method == "POST":
            body = await _json_body(request)
            service.add_to_basket(str(body.get("code") or ""))
        elif request.method == "DELETE":
            service.clear_basket()
        return JSONResponse(_basket_payload())

    async def basket_item(request: Request) -> JSONResponse:
        try:
            service.remove_from_basket(request.path_params["index"])
        except IndexError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return JSONResponse(_basket_payload())

    # ---------------- analysis ----------------
    async def analyze_quote(request: Request) -> JSONResponse:
        if request.method != "POST":
            return JSONResponse({"error": "Method not allowed"}, status_code=405)
        try:
            body = await request.json()
        except ValueError:
            body = None
        image = body.get("image") if isinstance(body, dict) else None
        if not image:
            return JSONResponse({"error": "Image data is required"}, status_code=400)
        try:
            parsed = await run_in_threadpool(vision.analyze, image)
        except Exception as exc:
            LOG.error("Quote analysis failed: %s", exc)
            return JSONResponse({"error": str(exc) or "Internal Server Error"}, status_code=500)
        return JSONResponse(parsed)

    async def scan(request: Request) -> JSONResponse:
        body = await _json_body(request)
        image = body.get("image")
        if not image:
            raise HTTPException(status_code=400, detail="Image data is required")
        try:
            result = await run_in_threadpool(service.scan, vision, image)
        except AnalysisError as exc:
            return JSONResponse({"error": str(exc), "hint": MANUAL_SEARCH_HINT, "fallback": "search"}, status_code=502)
        if result.highlighted is None:
            return JSONResponse({"status": result.status, "message": NOTHING_DETECTED, "acts": [], "result": None})
        return JSONResponse(
            {
                "status": result.status,
                "acts": [a.to_dict() for a in result.acts],
                "result": build_act_result(result.highlighted),
            }
        )

    # ---------------- session ----------------
    async def session(request: Request) -> JSONResponse:
        if request.method == "POST":
            body = await _json_body(request)
            user = service.login(
                str(body.get("name") or ""),
                str(body.get("email") or ""),
                str(body.get("code") or ""),
                str(body.get("role") or ""),
            )
            return JSONResponse({"user": user.to_dict()}, status_code=201)
        if request.method == "DELETE":
            service.logout()
            return JSONResponse({"user": None})
        user = service.current_user()
        return JSONResponse({"user": user.to_dict() if user else None})

    # ---------------- practitioner quotes ----------------
    async def quotes(request: Request) -> JSONResponse:
        _require_session()
        if request.method == "POST":
            draft = _draft_from_body(await _json_body(request))
            quote = service.create_quote(draft)
            return JSONResponse(quote.to_dict(), status_code=201)
        return JSONResponse({"items": [q.to_dict() for q in service.list_quotes()]})

    async def quote_preview(request: Request) -> JSONResponse:
        _require_session()
        draft = _draft_from_body(await _json_body(request))
        return JSONResponse(draft.summary())

    async def quote_detail(request: Request) -> JSONResponse:
        _require_session()
        return JSONResponse(service.get_quote(request.path_params["quote_id"]).to_dict())

    async def quote_open(request: Request) -> JSONResponse:
        _require_session()
        quote = service.open_quote(request.path_params["quote_id"])
        return JSONResponse(build_landing(quote, now=service.clock()))

    async def quote_accept(request: Request) -> JSONResponse:
        _require_session()
        return JSONResponse(service.accept_quote(request.path_params["quote_id"]).to_dict())

    async def dashboard(_: Request) -> JSONResponse:
        _require_session()
        return JSONResponse(
            {
                "stats": service.dashboard_stats().to_dict(),
                "items": [q.to_dict() for q in service.list_quotes()],
            }
        )

    # ---------------- patient links ----------------
    async def landing(request: Request) -> JSONResponse:
        quote = service.open_link(request.path_params["token"])
        return JSONResponse(build_landing(quote, now=service.clock()))

    async def landing_accept(request: Request) -> JSONResponse:
        quote = service.accept_by_token(request.path_params["token"])
        return JSONResponse({"quote_id": quote.id, "status": quote.status})

    routes = [
        Route("/api/health", health, methods=["GET"]),
        Route("/api/acts", acts, methods=["GET"]),
        Route("/api/acts/suggest", acts_suggest, methods=["GET"]),
        Route("/api/acts/{code:str}", act_detail, methods=["GET"]),
        Route("/api/basket", basket, methods=["GET", "POST", "DELETE"]),
        Route("/api/basket/{index:int}", basket_item, methods=["DELETE"]),
        Route("/api/analyze-quote", analyze_quote, methods=["GET", "POST", "PUT", "PATCH", "DELETE"]),
        Route("/api/scan", scan, methods=["POST"]),
        Route("/api/session", session, methods=["GET", "POST", "DELETE"]),
        Route("/api/quotes", quotes, methods=["GET", "POST"]),
        Route("/api/quotes/preview", quote_preview, methods=["POST"]),
        Route("/api/quotes/{quote_id:str}", quote_detail, methods=["GET"]),
        Route("/api/quotes/{quote_id:str}/open", quote_open, methods=["POST"]),
        Route("/api/quotes/{quote_id:str}/accept", quote_accept, methods=["POST"]),
        Route("/api/dashboard", dashboard, methods=["GET"]),
        Route("/d/{token:str}", landing, methods=["GET"]),
        Route("/d/{token:str}/accept", landing_accept, methods=["POST"]),
    ]

    app = Starlette(
        debug=False,
        routes=routes,
        exception_handlers={HTTPException: http_error, KlarityError: klarity_error},
    )

    origins = allow_origins or ["http://localhost:5173", "http://127.0.0.1:5173"]
    if "*" in origins:
        cors_allow_origins = ["*"]
    else:
        cors_allow_origins = origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    return app


__all__ = ["create_app"]
