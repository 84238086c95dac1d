import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from binaudit import (
    AuditPipeline,
    AuditRegistry,
    CollisionPolicy,
    DuplicateRecordError,
    FindingAggregator,
    NarrativeService,
    UpdateOutcome,
    __version__,
)

from . import config
from .logging_config import audit_log, configure_logging, set_request_id
from .models import (
    AnalyzeRequest,
    AuditRequest,
    CompleteRequest,
    RecommendationRequest,
    SubmitRequest,
)
from .security import (
    MAX_DESCRIPTION_LENGTH,
    PayloadTooLarge,
    ValidationError,
    check_declared_digest,
    decode_payload,
    sanitize_for_logging,
    validate_record_id,
    validate_requester,
    validate_string_length,
    validate_target_id,
)

logger = logging.getLogger(__name__)


def build_pipeline(registry: AuditRegistry) -> AuditPipeline:
    """Pipeline wired from environment configuration."""
    narrator = NarrativeService(
        backend=config.get_narrative_backend(),
        timeout_seconds=config.NARRATIVE_TIMEOUT_SECONDS,
    )
    return AuditPipeline(
        registry,
        aggregator=FindingAggregator.from_names(config.ANALYZERS),
        narrator=narrator,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    level = "DEBUG" if config.is_debug() else config.LOG_LEVEL
    configure_logging(level, json_format=config.LOG_JSON, log_file=config.LOG_FILE)
    logger.info("Binary Audit service starting (env=%s, analyzers=%s)", config.ENV, config.ANALYZERS)
    yield


def create_app(
    registry: Optional[AuditRegistry] = None,
    pipeline: Optional[AuditPipeline] = None,
    max_payload_bytes: Optional[int] = None
) -> FastAPI:
    """
    Build an app instance that owns its registry.

    When only a pipeline is supplied its registry is used.
    """
    if registry is None:
        registry = pipeline.registry if pipeline is not None else AuditRegistry(
            collision_policy=CollisionPolicy(config.COLLISION_POLICY)
        )
    if pipeline is None:
        pipeline = build_pipeline(registry)
    if max_payload_bytes is None:
        max_payload_bytes = config.MAX_PAYLOAD_BYTES

    app = FastAPI(
        title="Binary Audit Registry",
        version=__version__,
        lifespan=lifespan,
        docs_url=None if config.is_production() else "/docs",
    )
    app.state.registry = registry
    app.state.pipeline = pipeline
    app.state.max_payload_bytes = max_payload_bytes

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = set_request_id(request.headers.get("x-request-id"))
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError):
        audit_log.validation_failed(exc.field, exc.message)
        return JSONResponse(
            status_code=422,
            content={"detail": {"field": exc.field, "message": exc.message}},
        )

    @app.exception_handler(PayloadTooLarge)
    async def _payload_too_large(request: Request, exc: PayloadTooLarge):
        audit_log.validation_failed("payload_b64", str(exc))
        return JSONResponse(status_code=413, content={"detail": "PAYLOAD_TOO_LARGE"})

    @app.exception_handler(DuplicateRecordError)
    async def _duplicate_record(request: Request, exc: DuplicateRecordError):
        audit_log.audit_update_rejected(exc.record_id, "ID_COLLISION")
        return JSONResponse(status_code=409, content={"detail": "ID_COLLISION"})

    def read_payload(payload_b64: str, expected_digest: Optional[str]) -> bytes:
        payload = decode_payload(payload_b64, app.state.max_payload_bytes)
        check_declared_digest(expected_digest, payload)
        return payload

    def require_record(audit_id: str):
        audit_id = validate_record_id(audit_id)
        record = app.state.registry.get(audit_id)
        if record is None:
            audit_log.record_not_found(audit_id)
            raise HTTPException(404, "NOT_FOUND")
        return record

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "version": __version__,
            "records": len(app.state.registry),
        }

    @app.post("/audits")
    async def create_audit(req: AuditRequest, x_requester: Optional[str] = Header(default=None)):
        requester = validate_requester(x_requester)
        target_id = validate_target_id(req.target_id)
        payload = read_payload(req.payload_b64, req.expected_digest)
        metadata = req.metadata.to_metadata() if req.metadata else None

        def submitted(audit_id: str):
            record = app.state.registry.get(audit_id)
            audit_log.audit_submitted(audit_id, requester, record.content_digest, target_id)

        outcome = await app.state.pipeline.audit(
            payload, requester, target_id=target_id, metadata=metadata, on_submitted=submitted
        )

        record = outcome.record
        if not outcome.stored():
            audit_log.audit_update_rejected(outcome.audit_id, outcome.update.value)
        elif record is not None:
            audit_log.audit_finalized(
                record.id, record.status.value, record.severity.value, len(record.findings)
            )
        if record is None:
            raise HTTPException(404, "NOT_FOUND")
        return record.to_dict()

    @app.post("/audits/submit")
    def submit_audit(req: SubmitRequest, x_requester: Optional[str] = Header(default=None)):
        requester = validate_requester(x_requester)
        target_id = validate_target_id(req.target_id)
        payload = read_payload(req.payload_b64, req.expected_digest)
        metadata = req.metadata.to_metadata() if req.metadata else None

        audit_id = app.state.registry.submit(payload, requester, target_id=target_id, metadata=metadata)
        record = app.state.registry.get(audit_id)
        audit_log.audit_submitted(audit_id, requester, record.content_digest, target_id)
        return {"id": audit_id}

    @app.post("/audits/{audit_id}/complete")
    def complete_audit(audit_id: str, req: CompleteRequest):
        audit_id = validate_record_id(audit_id)
        logger.debug("Complete request for %s: %s", audit_id, sanitize_for_logging(req.model_dump(mode="json")))

        outcome = app.state.registry.finalize(
            audit_id,
            [f.to_finding() for f in req.findings],
            req.narrative,
            req.severity,
        )
        if outcome == UpdateOutcome.NOT_FOUND:
            audit_log.record_not_found(audit_id)
            raise HTTPException(404, "NOT_FOUND")
        if outcome == UpdateOutcome.ALREADY_TERMINAL:
            audit_log.audit_update_rejected(audit_id, outcome.value)
            raise HTTPException(409, "ALREADY_TERMINAL")

        record = app.state.registry.get(audit_id)
        audit_log.audit_finalized(
            record.id, record.status.value, record.severity.value, len(record.findings)
        )
        return record.to_dict()

    @app.get("/audits/{audit_id}")
    def get_audit(audit_id: str):
        return require_record(audit_id).to_dict()

    @app.get("/audits/{audit_id}/summary")
    def get_audit_summary(audit_id: str):
        return require_record(audit_id).summary().to_dict()

    @app.get("/audits")
    def list_audits(requester: Optional[str] = Query(default=None), target_id: Optional[str] = Query(default=None)):
        if (requester is None) == (target_id is None):
            raise ValidationError("query", "exactly one of requester or target_id is required")

        registry = app.state.registry
        if requester is not None:
            summaries = registry.list_by_requester(validate_requester(requester))
        else:
            summaries = registry.list_by_target(validate_target_id(target_id))
        return {"audits": [s.to_dict() for s in summaries], "count": len(summaries)}

    @app.get("/statistics")
    def statistics():
        return app.state.registry.statistics()._asdict()

    @app.post("/analyze")
    async def analyze(req: AnalyzeRequest):
        payload = read_payload(req.payload_b64, req.expected_digest)
        report = await app.state.pipeline.analyze_async(payload)
        return report.to_dict()

    @app.post("/recommendations")
    async def recommendations(req: RecommendationRequest):
        description = validate_string_length(
            req.description, "description", max_length=MAX_DESCRIPTION_LENGTH
        )
        text = await app.state.pipeline.narrator.recommend_async(description)
        return {"recommendations": text}

    return app


app = create_app()
