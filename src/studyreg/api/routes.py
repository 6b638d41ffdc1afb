"""
Study Registration API Routes

FastAPI routes for the feasibility wizard and volunteer estimate.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import APIRouter, Body, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, model_validator

from studyreg import __version__
from studyreg.config import get_settings
from studyreg.core.enums import SectionStatus, WizardSection
from studyreg.core.exceptions import (
    FormValidationError,
    SessionNotFoundError,
    StorageError,
    UnknownSectionError,
)
from studyreg.core.schemas import Adjustment, EstimateResult, ReadinessCheck
from studyreg.feasibility.estimator import explain
from studyreg.feasibility.readiness import assess_readiness
from studyreg.observability.metrics import metrics
from studyreg.observability.tracer import get_tracer
from studyreg.storage.session_store import SessionStore, get_session_store
from studyreg.wizard.forms import add_site, remove_site, save_section
from studyreg.wizard.preview import preview_estimate
from studyreg.wizard.progress import SectionProgress, complete, progress, touch
from studyreg.wizard.state import WizardSession, parse_section, to_criteria

logger = logging.getLogger(__name__)

# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================


class SessionCreatedResponse(BaseModel):
    """Response after creating a wizard session."""

    session_id: str


class FeasibilityResponse(BaseModel):
    """Full wizard state for a session."""

    session_id: str
    feasibility: dict[str, Any]
    progress: SectionProgress


class SectionResponse(BaseModel):
    """One wizard section and its task-list status."""

    section: WizardSection
    status: SectionStatus
    data: dict[str, Any]


class SectionSavedResponse(BaseModel):
    """Response after a section is saved."""

    section: WizardSection
    status: SectionStatus
    next_section: WizardSection | None
    progress: SectionProgress


class ResultsResponse(BaseModel):
    """Persisted estimate with its breakdown and readiness check."""

    available: int
    matched: int
    summary: str
    breakdown: list[Adjustment]
    readiness: ReadinessCheck
    regions: list[str]


class SectionOverride(BaseModel):
    """
    One section's hypothetical values.

    `path` accepts the legacy page path form ("/researcher/feasibility/medical");
    its last segment is used as the section name.
    """

    section: str | None = None
    path: str | None = None
    values: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def resolve_section(self) -> SectionOverride:
        if not self.section and self.path:
            self.section = self.path.rstrip("/").rsplit("/", 1)[-1]
        return self


class EstimateRequest(BaseModel):
    """Live estimate request."""

    overrides: SectionOverride | None = None


class SiteRowRequest(BaseModel):
    """Fields of the "Add site" form."""

    name: str | None = None
    code: str | None = None
    coverage_type: str | None = None
    radius: str | float | None = None
    districts: str | list[str] | None = None


# =============================================================================
# DEPENDENCY INJECTION FOR PERSISTENCE
# =============================================================================

# Global session store instance (set via configure_session_store)
_session_store: Optional[SessionStore] = None


def configure_session_store(store: Optional[SessionStore]) -> None:
    """Use `store` for all routes. None falls back to the configured backend."""
    global _session_store
    _session_store = store


def get_store() -> SessionStore:
    return _session_store if _session_store is not None else get_session_store()


def _load_session(session_id: str) -> WizardSession:
    try:
        return get_store().get(session_id)
    except SessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session {session_id} not found",
        ) from None
    except StorageError as e:
        logger.error("Failed to load session %s: %s", session_id, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Session storage error"
        ) from e


def _save_session(session: WizardSession) -> None:
    try:
        get_store().save(session)
    except StorageError as e:
        logger.error("Failed to save session %s: %s", session.session_id, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Session storage error"
        ) from e


def _parse_section(section: str) -> WizardSection:
    try:
        return parse_section(section)
    except UnknownSectionError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Section {section} not found",
        ) from None


# =============================================================================
# ROUTER
# =============================================================================

router = APIRouter(prefix="/api/v1", tags=["studyreg"])


@router.post(
    "/sessions", response_model=SessionCreatedResponse, status_code=status.HTTP_201_CREATED
)
async def create_session() -> SessionCreatedResponse:
    """Start a new feasibility wizard session."""
    try:
        session = get_store().create()
    except StorageError as e:
        logger.error("Failed to create session: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Session storage error"
        ) from e
    return SessionCreatedResponse(session_id=session.session_id)


@router.get("/sessions/{session_id}/feasibility", response_model=FeasibilityResponse)
async def get_feasibility(session_id: str) -> FeasibilityResponse:
    """Get every wizard section plus overall progress."""
    session = _load_session(session_id)
    return FeasibilityResponse(
        session_id=session.session_id,
        feasibility=session.feasibility.model_dump(mode="json"),
        progress=progress(session.feasibility),
    )


# =============================================================================
# RESULTS AND LIVE ESTIMATE
#
# Registered before the generic /{section} routes so "results" and
# "estimate" are not captured as section names.
# =============================================================================


@router.get("/sessions/{session_id}/feasibility/results", response_model=ResultsResponse)
async def get_results(session_id: str) -> ResultsResponse:
    """Compute, persist and return the estimate for the session's criteria.

    Marks the results section completed and the wizard as completed.
    """
    settings = get_settings()
    tracer = get_tracer("studyreg.api")

    with tracer.span("results", {"session_id": session_id}) as span:
        session = _load_session(session_id)
        state = session.feasibility
        criteria = to_criteria(state)

        with metrics.timer(metrics.ESTIMATE_SECONDS, {"kind": "results"}):
            breakdown = explain(criteria, settings.estimator.to_weights())
        result = breakdown.result
        metrics.counter(metrics.ESTIMATES, labels={"kind": "results"})

        state.results.total_estimate = result.available
        state.results.matched_estimate = result.matched
        state.completed = True
        complete(state, WizardSection.RESULTS)
        _save_session(session)

        span.set_attribute("matched", result.matched)
        logger.info(
            "Session %s results: %d of %d", session_id, result.matched, result.available
        )

    return ResultsResponse(
        available=result.available,
        matched=result.matched,
        summary=result.summary(),
        breakdown=list(breakdown.adjustments),
        readiness=assess_readiness(result, criteria.target_recruitment, settings.readiness),
        regions=list(criteria.regions),
    )


@router.post("/sessions/{session_id}/feasibility/estimate", response_model=EstimateResult)
async def live_estimate(
    session_id: str, body: EstimateRequest | None = None
) -> EstimateResult:
    """Estimate with one section overridden, without saving anything."""
    settings = get_settings()
    session = _load_session(session_id)
    overrides = body.overrides if body else None

    with get_tracer("studyreg.api").span("estimate", {"session_id": session_id}):
        with metrics.timer(metrics.ESTIMATE_SECONDS, {"kind": "preview"}):
            result = preview_estimate(
                session.feasibility,
                overrides.section if overrides else None,
                overrides.values if overrides else None,
                settings.estimator.to_weights(),
            )
    metrics.counter(metrics.ESTIMATES, labels={"kind": "preview"})
    return result


# =============================================================================
# SITE ROWS
# =============================================================================


@router.post(
    "/sessions/{session_id}/feasibility/sites/rows",
    response_model=SectionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_site_row(session_id: str, row: SiteRowRequest) -> SectionResponse:
    """Add one site from the "Add site" form. A blank form adds nothing."""
    session = _load_session(session_id)
    state = session.feasibility
    add_site(state, row.name, row.code, row.coverage_type, row.radius, row.districts)
    _save_session(session)
    return SectionResponse(
        section=WizardSection.SITES,
        status=state.status_of(WizardSection.SITES),
        data=state.sites.model_dump(mode="json"),
    )


@router.delete(
    "/sessions/{session_id}/feasibility/sites/rows/{index}", response_model=SectionResponse
)
async def remove_site_row(session_id: str, index: int) -> SectionResponse:
    """Remove the site at `index`."""
    session = _load_session(session_id)
    state = session.feasibility
    if not remove_site(state, index):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Site {index} not found",
        )
    _save_session(session)
    return SectionResponse(
        section=WizardSection.SITES,
        status=state.status_of(WizardSection.SITES),
        data=state.sites.model_dump(mode="json"),
    )


# =============================================================================
# SECTIONS
# =============================================================================


@router.get("/sessions/{session_id}/feasibility/{section}", response_model=SectionResponse)
async def get_section(session_id: str, section: str) -> SectionResponse:
    """Get one section. Viewing a section that was not started marks it in-progress."""
    wizard_section = _parse_section(section)
    session = _load_session(session_id)
    state = session.feasibility
    touch(state, wizard_section)
    _save_session(session)
    return SectionResponse(
        section=wizard_section,
        status=state.status_of(wizard_section),
        data=state.section(wizard_section).model_dump(mode="json"),
    )


@router.post("/sessions/{session_id}/feasibility/{section}", response_model=SectionSavedResponse)
async def post_section(
    session_id: str, section: str, form: dict[str, Any] | None = Body(default=None)
) -> SectionSavedResponse | JSONResponse:
    """Validate and save one section.

    Returns:
        Next section and progress, or 422 with GOV.UK-style field errors.
    """
    wizard_section = _parse_section(section)
    session = _load_session(session_id)
    state = session.feasibility

    with get_tracer("studyreg.api").span(
        "save_section", {"session_id": session_id, "section": wizard_section.value}
    ):
        try:
            following = save_section(state, wizard_section, form or {})
        except UnknownSectionError:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Section {section} cannot be posted",
            ) from None
        except FormValidationError as e:
            return JSONResponse(
                status_code=422,
                content={"errors": [err.to_dict() for err in e.errors]},
            )
        _save_session(session)

    return SectionSavedResponse(
        section=wizard_section,
        status=state.status_of(wizard_section),
        next_section=following,
        progress=progress(state),
    )


# =============================================================================
# SERVICE
# =============================================================================


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint.

    Returns:
        Health status and version info
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "studyreg",
    }


@router.get("/metrics")
async def get_metrics() -> dict:
    """Counter totals across all labels."""
    return metrics.get_all()


# =============================================================================
# APP FACTORY
# =============================================================================


def create_app():
    """Create FastAPI application.

    Returns:
        Configured FastAPI app
    """
    from fastapi import FastAPI
    from fastapi.middleware.cors import CORSMiddleware

    from studyreg.observability.logging_config import configure_logging

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        configure_logging(settings.logging)
        settings.ensure_directories()
        logger.info(
            "studyreg API %s starting (%s sessions)", __version__, settings.sessions.backend
        )
        yield

    app = FastAPI(
        title="Study Registration API",
        description="Feasibility wizard and volunteer estimate for research studies",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    return app


# Create app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
