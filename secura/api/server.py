from fastapi import FastAPI, Depends, Form, File, UploadFile, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import Dict, List, Optional

from secura.config import settings
from secura.database import Base, engine, get_db
from secura.models.analysis_log import AnalysisLog  # noqa: F401  (registers table)
from secura.models.report import ClassificationReport  # noqa: F401
from secura.models.user import AccessToken, UserRole  # noqa: F401
from secura.schemas.analyze_schemas import (
    AnalysisLogOut,
    AnalyzeResponse,
    ImpersonationResponse,
    MeResponse,
    ReportRequest,
    ReportResponse,
    StatusResponse,
)
from secura.pipelines.forensics_pipeline import analyze_upload
from secura.pipelines.screening_pipeline import check_upload
from secura.services.analysis_log_service import get_analysis_log, list_analysis_logs, record_analysis
from secura.services.auth_service import get_roles
from secura.services.gateway_client import GatewayClient, GatewayError
from secura.services.report_service import submit_report
from secura.api.security import check_rate_limit, get_current_user, get_optional_user
from secura.api.admin import router as admin_router
from secura.utils.classification import VALID_CLASSIFICATIONS
from secura.utils.logging_config import StructuredLogger, init_logging, metrics

VERSION = "0.1.0"

init_logging()

logger = StructuredLogger(__name__)

Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Secura API",
    version=VERSION,
    description="Upload classification relay and report triage",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.cors_origins_list != ["*"],
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)


# Security headers middleware
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    if settings.is_production:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    if hasattr(request.state, "rate_limit_remaining"):
        response.headers["X-RateLimit-Limit"] = str(request.state.rate_limit_limit)
        response.headers["X-RateLimit-Remaining"] = str(request.state.rate_limit_remaining)
    return response


# ============== ERROR SHAPE ==============
# Every error leaves the API as {"error": "..."}


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": f"Invalid request. {problems}".strip()},
    )


@app.exception_handler(GatewayError)
async def gateway_exception_handler(request: Request, exc: GatewayError):
    metrics.increment(f"gateway.errors.{exc.status_code}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


def cors_error_headers(request: Request) -> Dict[str, str]:
    """CORS headers for the 500 handler, which runs outside CORSMiddleware."""
    origins = settings.cors_origins_list
    if "*" in origins:
        return {"Access-Control-Allow-Origin": "*"}
    origin = request.headers.get("origin")
    if origin and origin in origins:
        return {"Access-Control-Allow-Origin": origin, "Vary": "Origin"}
    return {}


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error", path=request.url.path, error=str(exc), exc_info=True)
    message = str(exc) if settings.expose_error_details else "Internal server error"
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": message or "Unknown error"},
        headers=cors_error_headers(request),
    )


def get_gateway() -> GatewayClient:
    return GatewayClient()


app.include_router(admin_router)


@app.get("/health")
def health():
    """Health check endpoint - no auth required."""
    return {"status": "ok"}


@app.get("/status", response_model=StatusResponse)
def status_info():
    """API status and configuration info."""
    return StatusResponse(
        status="ok",
        version=VERSION,
        environment=settings.environment,
        filename_ruleset=settings.filename_ruleset,
        filename_rules_primary=settings.filename_rules_primary,
        rate_limit={
            "requests": settings.rate_limit_requests,
            "window_seconds": settings.rate_limit_window,
        },
    )


# ============== CLASSIFICATION ENDPOINTS ==============


@app.post(
    "/analyze-deepfake",
    response_model=AnalyzeResponse,
    dependencies=[Depends(check_rate_limit)],
)
async def analyze_deepfake(
    file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    gateway: GatewayClient = Depends(get_gateway),
    user_id: Optional[str] = Depends(get_optional_user),
):
    """Classify an uploaded image or video."""
    if file is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided")

    logger.info("Analyzing file", filename=file.filename, content_type=file.content_type)
    result = await analyze_upload(file, gateway)
    raw = result.pop("raw", {})

    log = record_analysis(
        db,
        filename=result["filename"],
        result=result,
        analysis_context=result["analysisType"],
        image_hash=raw.get("image_hash"),
        user_id=user_id,
    )
    logger.info(
        "Analysis result",
        analysis_log_id=log.id,
        classification=result["classification"],
        confidence=result["confidence"],
        analysis_type=result["analysisType"],
    )
    return {**result, "analysisLogId": log.id}


@app.post(
    "/impersonation-check",
    response_model=ImpersonationResponse,
    dependencies=[Depends(check_rate_limit)],
)
async def impersonation_check(
    file: Optional[UploadFile] = File(None),
    checkType: str = Form("impersonation"),
    claimedIdentityId: Optional[str] = Form(None),
    claimedIdentityName: Optional[str] = Form(None),
    referenceImage: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    gateway: GatewayClient = Depends(get_gateway),
    user_id: Optional[str] = Depends(get_optional_user),
):
    """Screen an upload before it is posted; FAKE results are blocked."""
    if file is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided")

    result = await check_upload(
        file,
        gateway,
        check_type=checkType,
        claimed_identity_id=claimedIdentityId,
        claimed_identity_name=claimedIdentityName,
        reference_image=referenceImage,
    )
    raw = result.pop("raw", {})

    log = record_analysis(
        db,
        filename=file.filename or "upload",
        result=result,
        analysis_context="impersonation",
        image_hash=raw.get("image_hash"),
        user_id=user_id,
    )
    logger.info(
        "Impersonation check result",
        analysis_log_id=log.id,
        result=result["result"],
        should_block=result["shouldBlock"],
    )
    return {**result, "analysisLogId": log.id}


@app.get("/analysis-logs", response_model=List[AnalysisLogOut])
async def read_my_analysis_logs(
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """The caller's own analyses, newest first."""
    return list_analysis_logs(db, user_id=user_id, limit=limit)


@app.get("/analysis-logs/{analysis_log_id}", response_model=AnalysisLogOut)
async def read_analysis_log(
    analysis_log_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    log = get_analysis_log(db, analysis_log_id)
    if log is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Analysis log not found")
    return log


# ============== REPORT ENDPOINTS ==============


@app.post("/submit-report", response_model=ReportResponse)
async def submit_classification_report(
    report: ReportRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """
    Report a misclassification.

    The caller must be authenticated; the report starts as pending.
    """
    if not report.analysis_log_id or not report.expected_classification or not (report.reason or "").strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields: analysisLogId, expectedClassification, reason",
        )

    if report.expected_classification not in VALID_CLASSIFICATIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid classification. Must be: real, ai_safe, or deepfake",
        )

    if get_analysis_log(db, report.analysis_log_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Analysis log not found")

    created = submit_report(
        db,
        analysis_log_id=report.analysis_log_id,
        expected_classification=report.expected_classification,
        reason=report.reason.strip(),
        reporter_user_id=user_id,
    )
    logger.info("Report submitted", report_id=created.id, analysis_log_id=created.analysis_log_id)
    metrics.increment("reports.submitted")

    return ReportResponse(success=True, report_id=created.id)


@app.get("/me", response_model=MeResponse)
async def me(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    """The caller's user id and roles."""
    return MeResponse(user_id=user_id, roles=get_roles(db, user_id))
