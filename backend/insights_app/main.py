from __future__ import annotations

from functools import lru_cache
import logging
from typing import Optional
import uuid

from fastapi import Depends, FastAPI, File, Form, Header, HTTPException, Request, Response, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from .config import Settings, configure_logging, load_settings
from .errors import EmptyInput, InsightGenerationError, PaymentRequired, RateLimited
from .generator import InsightGenerator
from .pipeline import NoFeedbackAvailable, generate_and_store_insight, import_feedback_csv, render_insight_markdown
from .schemas import (
    DashboardStats,
    Feedback,
    FeedbackCreate,
    FeedbackSource,
    GenerateInsightsRequest,
    ImportResponse,
    Insight,
    Profile,
    ProfileUpdate,
    SignupRequest,
    SignupResponse,
    SourceCreate,
    SourceUpdate,
)
from .store import FeedbackStore, RecordNotFound

configure_logging(load_settings().log_level)
logger = logging.getLogger(__name__)

GENERATE_INSIGHTS_PATH = "/functions/generate-insights"
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

app = FastAPI(title="Feedback Insights", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type", "x-user-id"],
)

STORE = FeedbackStore()


@lru_cache
def get_settings() -> Settings:
    return load_settings()


def get_store() -> FeedbackStore:
    return STORE


def get_generator(settings: Settings = Depends(get_settings)) -> InsightGenerator:
    return InsightGenerator(settings)


def get_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id.strip()


def _function_error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=CORS_HEADERS)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


# Registered after CORSMiddleware, so it runs first: every OPTIONS on the
# function path gets an empty 200, whatever preflight headers the browser sends.
@app.middleware("http")
async def generate_insights_preflight(request: Request, call_next):
    if request.method == "OPTIONS" and request.url.path == GENERATE_INSIGHTS_PATH:
        return Response(status_code=200, headers=CORS_HEADERS)
    return await call_next(request)


@app.post(GENERATE_INSIGHTS_PATH)
async def generate_insights(
    request: Request,
    generator: InsightGenerator = Depends(get_generator),
) -> JSONResponse:
    try:
        body = await request.json()
        payload = GenerateInsightsRequest.model_validate(body if isinstance(body, dict) else {})
        if not payload.feedback:
            return _function_error(400, "No feedback provided")
        result = await run_in_threadpool(generator.generate, payload.feedback)
    except EmptyInput as exc:
        return _function_error(400, str(exc))
    except RateLimited as exc:
        return _function_error(429, str(exc))
    except PaymentRequired as exc:
        return _function_error(402, str(exc))
    except ValidationError as exc:
        logger.error("Invalid generate-insights payload: %s", exc)
        return _function_error(500, "Invalid feedback payload")
    except Exception as exc:
        logger.exception("Error in generate-insights function")
        return _function_error(500, str(exc) or "Unknown error")

    return JSONResponse(content=result.model_dump(), headers=CORS_HEADERS)


@app.post("/auth/signup", response_model=SignupResponse)
def signup(payload: SignupRequest, store: FeedbackStore = Depends(get_store)) -> SignupResponse:
    user_id = str(uuid.uuid4())
    profile = store.create_profile(user_id, email=payload.email, full_name=payload.full_name)
    return SignupResponse(user_id=user_id, profile=profile)


@app.get("/profile", response_model=Profile)
def read_profile(user_id: str = Depends(get_user_id), store: FeedbackStore = Depends(get_store)) -> Profile:
    try:
        return store.get_profile(user_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.patch("/profile", response_model=Profile)
def update_profile(
    payload: ProfileUpdate,
    user_id: str = Depends(get_user_id),
    store: FeedbackStore = Depends(get_store),
) -> Profile:
    try:
        return store.update_profile(user_id, **payload.model_dump(exclude_unset=True))
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.get("/sources", response_model=list[FeedbackSource])
def list_sources(user_id: str = Depends(get_user_id), store: FeedbackStore = Depends(get_store)) -> list[FeedbackSource]:
    return store.list_sources(user_id)


@app.post("/sources", response_model=FeedbackSource, status_code=201)
def create_source(
    payload: SourceCreate,
    user_id: str = Depends(get_user_id),
    store: FeedbackStore = Depends(get_store),
) -> FeedbackSource:
    try:
        return store.create_source(user_id, payload.name, payload.description, payload.source_type)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/sources/{source_id}", response_model=FeedbackSource)
def read_source(
    source_id: str,
    user_id: str = Depends(get_user_id),
    store: FeedbackStore = Depends(get_store),
) -> FeedbackSource:
    try:
        return store.get_source(user_id, source_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.patch("/sources/{source_id}", response_model=FeedbackSource)
def update_source(
    source_id: str,
    payload: SourceUpdate,
    user_id: str = Depends(get_user_id),
    store: FeedbackStore = Depends(get_store),
) -> FeedbackSource:
    try:
        return store.update_source(user_id, source_id, **payload.model_dump(exclude_unset=True))
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.delete("/sources/{source_id}", status_code=204)
def delete_source(
    source_id: str,
    user_id: str = Depends(get_user_id),
    store: FeedbackStore = Depends(get_store),
) -> Response:
    try:
        store.delete_source(user_id, source_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/feedback", response_model=list[Feedback])
def list_feedback(
    source_id: Optional[str] = None,
    search: Optional[str] = None,
    user_id: str = Depends(get_user_id),
    store: FeedbackStore = Depends(get_store),
) -> list[Feedback]:
    return store.list_feedback(user_id, source_id=source_id, search=search)


@app.post("/feedback", response_model=Feedback, status_code=201)
def create_feedback(
    payload: FeedbackCreate,
    user_id: str = Depends(get_user_id),
    store: FeedbackStore = Depends(get_store),
) -> Feedback:
    try:
        return store.create_feedback(
            user_id,
            content=payload.content,
            source_id=payload.source_id,
            category=payload.category,
            sentiment=payload.sentiment,
        )
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.post("/feedback/import", response_model=ImportResponse, status_code=201)
async def import_feedback(
    file: UploadFile = File(...),
    source_id: Optional[str] = Form(None),
    user_id: str = Depends(get_user_id),
    store: FeedbackStore = Depends(get_store),
) -> ImportResponse:
    if not (file.filename or "").endswith(".csv"):
        raise HTTPException(status_code=400, detail="Please upload a CSV file")

    content = await file.read()
    try:
        created = import_feedback_csv(store, user_id, content, source_id=source_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        raise HTTPException(status_code=400, detail=f"Failed to parse CSV: {exc}") from exc

    if not created:
        raise HTTPException(status_code=400, detail="CSV does not contain usable feedback rows")
    return ImportResponse(imported=len(created), feedback=created)


@app.get("/feedback/{feedback_id}", response_model=Feedback)
def read_feedback(
    feedback_id: str,
    user_id: str = Depends(get_user_id),
    store: FeedbackStore = Depends(get_store),
) -> Feedback:
    try:
        return store.get_feedback(user_id, feedback_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.delete("/feedback/{feedback_id}", status_code=204)
def delete_feedback(
    feedback_id: str,
    user_id: str = Depends(get_user_id),
    store: FeedbackStore = Depends(get_store),
) -> Response:
    try:
        store.delete_feedback(user_id, feedback_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/insights", response_model=list[Insight])
def list_insights(user_id: str = Depends(get_user_id), store: FeedbackStore = Depends(get_store)) -> list[Insight]:
    return store.list_insights(user_id)


@app.post("/insights/generate", response_model=Insight, status_code=201)
def generate_insight(
    user_id: str = Depends(get_user_id),
    store: FeedbackStore = Depends(get_store),
    generator: InsightGenerator = Depends(get_generator),
) -> Insight:
    try:
        return generate_and_store_insight(store, user_id, generator)
    except NoFeedbackAvailable as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RateLimited as exc:
        raise HTTPException(status_code=429, detail=str(exc)) from exc
    except PaymentRequired as exc:
        raise HTTPException(status_code=402, detail=str(exc)) from exc
    except InsightGenerationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@app.get("/insights/{insight_id}", response_model=Insight)
def read_insight(
    insight_id: str,
    user_id: str = Depends(get_user_id),
    store: FeedbackStore = Depends(get_store),
) -> Insight:
    try:
        return store.get_insight(user_id, insight_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.get("/insights/{insight_id}/download")
def download_insight(
    insight_id: str,
    user_id: str = Depends(get_user_id),
    store: FeedbackStore = Depends(get_store),
) -> PlainTextResponse:
    try:
        insight = store.get_insight(user_id, insight_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return PlainTextResponse(
        content=render_insight_markdown(insight),
        media_type="text/markdown",
        headers={"Content-Disposition": f'attachment; filename="insight-{insight.id}.md"'},
    )


@app.delete("/insights/{insight_id}", status_code=204)
def delete_insight(
    insight_id: str,
    user_id: str = Depends(get_user_id),
    store: FeedbackStore = Depends(get_store),
) -> Response:
    try:
        store.delete_insight(user_id, insight_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/dashboard", response_model=DashboardStats)
def dashboard(user_id: str = Depends(get_user_id), store: FeedbackStore = Depends(get_store)) -> DashboardStats:
    return store.dashboard(user_id)
