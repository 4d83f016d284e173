#!/usr/bin/env python3
"""FastAPI inference host for the Safegaze page script.

This server runs NSFW, pose, face and gender detection on web images and
returns the detection payload the redaction renderer consumes.
"""

import base64
import binascii
import logging
from typing import Any, Dict, Optional

import cv2
from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import __version__
from .core.config import SafegazeConfig, get_default_config, load_config, resolve_config_path
from .core.engine import InferenceEngine
from .core.errors import ImageDecodeError
from .core.fetcher import ImageFetcher
from .core.telemetry import RedactionCounters
from .models.request import DetectRequest, MessageKind, MessageRequest, ScriptMessage
from .models.response import (
    HealthResponse,
    MessageResponse,
    RedactResponse,
    StatsResponse,
    VersionInfo,
)
from .pipelines.orchestrator import DetectionOrchestrator
from .renderer.redactor import Redactor, RenderState
from .utils.formatters import detection_result_to_wire, nsfw_wire_payload
from .utils.imaging import decode_image, encode_png_data_url

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Safegaze Inference Host",
    description="Detection and redaction of indecent imagery in web pages",
    version=__version__,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log validation errors with request body for debugging."""
    print(f"Validation error on {request.url}")
    try:
        body = await request.body()
        print(f"Request body: {body.decode(errors='replace')[:500]}")
    except RuntimeError:
        # Multipart parsing already consumed the stream
        print("Request body: <multipart form, already consumed>")
    print(f"Validation errors: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors()},
    )


# Will be initialized on startup
config: Optional[SafegazeConfig] = None
engine: Optional[InferenceEngine] = None
orchestrator: Optional[DetectionOrchestrator] = None
redactor: Optional[Redactor] = None
counters: Optional[RedactionCounters] = None
fetcher: Optional[ImageFetcher] = None


def init_state(server_config: SafegazeConfig, inference_engine: InferenceEngine) -> None:
    """Wire the pipeline, renderer and counters around an inference engine."""
    global config, engine, orchestrator, redactor, counters, fetcher

    if orchestrator is not None:
        orchestrator.shutdown()

    config = server_config
    engine = inference_engine
    counters = RedactionCounters()
    fetcher = ImageFetcher(timeout=config.pipeline.download_timeout)
    orchestrator = DetectionOrchestrator.from_config(engine, config, counters=counters)
    redactor = Redactor(config.renderer, counters=counters)


@app.on_event("startup")
async def startup_event():
    """Initialize server on startup."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config_path = resolve_config_path()
    try:
        server_config = load_config(config_path)
        print(f"Loaded configuration from: {config_path}")
    except Exception as e:
        print(f"Error loading config: {e}")
        print("Using default configuration")
        server_config = get_default_config()

    inference_engine = InferenceEngine.from_config(server_config)
    for name, handle in inference_engine.handles.items():
        state = "ready" if handle.available else f"unavailable ({handle.load_error})"
        print(f"Model {name}: {state}")

    init_state(server_config, inference_engine)
    print(f"Pipeline initialized: max_workers={server_config.pipeline.max_workers}")
    print("Server startup complete")


@app.on_event("shutdown")
async def shutdown_event():
    if orchestrator is not None:
        orchestrator.shutdown()


def _require_pipeline() -> DetectionOrchestrator:
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Pipeline not initialized",
        )
    return orchestrator


def _decode_base64(data: str) -> Optional[bytes]:
    """Bytes of a base64 string or data URL, or None if it is not valid base64."""
    if data.startswith("data:"):
        data = data.partition(",")[2]
    try:
        return base64.b64decode(data, validate=True) or None
    except (binascii.Error, ValueError):
        return None


def _model_availability() -> Optional[Dict[str, bool]]:
    if engine is None:
        return None
    return {name: handle.available for name, handle in engine.handles.items()}


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint.

    Returns:
        HealthResponse: Server status and which models loaded
    """
    return HealthResponse(status="UP", models=_model_availability())


@app.get("/", response_model=HealthResponse)
async def root():
    """Root endpoint - acts as health check."""
    return HealthResponse(status="UP", models=_model_availability())


@app.get("/version", response_model=VersionInfo)
async def version_info():
    """Get server version and model information.

    Returns:
        VersionInfo: Version, model handles and configuration summary
    """
    pipeline = _require_pipeline()
    pipeline_info = pipeline.get_info()

    return VersionInfo(
        version=config.server.version,
        models=engine.get_info(),
        config=pipeline_info["config"],
    )


@app.get("/info")
async def server_info():
    """Server information endpoint."""
    info: Dict[str, Any] = {
        "name": "Safegaze Inference Host",
        "version": __version__ if config is None else config.server.version,
        "endpoints": {
            "health": "/health",
            "version": "/version",
            "detect": "/detect",
            "detect_upload": "/detect/upload",
            "redact": "/redact",
            "message": "/message",
            "stats": "/stats",
            "info": "/info",
        },
    }
    if orchestrator is not None:
        info["detectors"] = orchestrator.get_info()["detectors"]
    return info


@app.get("/stats", response_model=StatsResponse)
async def stats():
    """Telemetry counters since startup."""
    if counters is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Server not fully initialized",
        )
    return StatsResponse(**counters.snapshot())


@app.post("/detect")
def detect(request: DetectRequest):
    """Run detection on an image given by URL or inline base64.

    Returns:
        dict: ``{"isNSFW": true}`` or the detection payload

    Raises:
        HTTPException: 422 if neither ``url`` nor ``image_base64`` is given
    """
    pipeline = _require_pipeline()
    if not request.url and not request.image_base64:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Either url or image_base64 is required",
        )

    if request.image_base64:
        raw_bytes = _decode_base64(request.image_base64)
        if raw_bytes is None:
            logger.warning("Treating image as unsafe, invalid base64 payload")
            return nsfw_wire_payload()
        result = pipeline.process_bytes(raw_bytes, source_url=request.url)
    else:
        logger.info(f"Received detect request: url={request.url}")
        result = pipeline.process_url(request.url, fetcher)

    return detection_result_to_wire(result)


@app.post("/detect/upload")
def detect_upload(file: UploadFile = File(...)):
    """Run detection on an uploaded image file."""
    pipeline = _require_pipeline()
    raw_bytes = file.file.read()
    logger.info(f"Received upload: {file.filename} ({len(raw_bytes)} bytes)")
    return detection_result_to_wire(pipeline.process_bytes(raw_bytes, source_url=None))


@app.post("/redact", response_model=RedactResponse)
def redact(
    file: UploadFile = File(...),
    display_width: Optional[int] = Form(default=None, gt=0),
    display_height: Optional[int] = Form(default=None, gt=0),
):
    """Detect and render the redacted image as it would be displayed.

    Args:
        file: Image file
        display_width: Width the image is displayed at (default: original)
        display_height: Height the image is displayed at (default: original)

    Returns:
        RedactResponse: Render state, detection payload and PNG data URL
    """
    pipeline = _require_pipeline()
    raw_bytes = file.file.read()
    try:
        image = decode_image(raw_bytes)
    except ImageDecodeError as e:
        logger.warning(f"Treating upload as unsafe, decode failed: {e}")
        return RedactResponse(state=RenderState.NSFW.value, detection=nsfw_wire_payload(), image="")

    detection = pipeline.process_image(image, raw_bytes=raw_bytes)

    img_h, img_w = image.shape[:2]
    canvas_w = display_width or img_w
    canvas_h = display_height or img_h
    if (canvas_w, canvas_h) != (img_w, img_h):
        image = cv2.resize(image, (canvas_w, canvas_h), interpolation=cv2.INTER_AREA)

    outcome = redactor.render(detection, image)
    return RedactResponse(
        state=outcome.state.value,
        detection=detection_result_to_wire(detection),
        image=encode_png_data_url(outcome.image),
        decisions=[decision.to_dict() for decision in outcome.decisions],
    )


@app.post("/message", response_model=MessageResponse)
def message(request: MessageRequest):
    """Handle a message from the page script.

    ``coreML/-/<url>/-/<uid>[/-/<base64>]`` runs detection on the inline
    image (or downloads the URL) and returns the payload for ``uid``;
    ``replaced`` counts one more blurred image.
    """
    pipeline = _require_pipeline()
    parsed = ScriptMessage.parse(request.body)

    if parsed.kind == MessageKind.REPLACED:
        counters.record_blurred_image()
        return MessageResponse(status="ok")

    if parsed.kind == MessageKind.UNKNOWN:
        logger.info(f"Ignoring unknown page message: {request.body[:100]!r}")
        return MessageResponse(status="ignored")

    raw_bytes = _decode_base64(parsed.image_data) if parsed.image_data else None
    if raw_bytes is not None:
        result = pipeline.process_bytes(raw_bytes, source_url=parsed.url)
    else:
        result = pipeline.process_url(parsed.url, fetcher)

    return MessageResponse(uid=parsed.uid, detection=detection_result_to_wire(result))


if __name__ == "__main__":
    import uvicorn

    # For local development
    uvicorn.run(
        "safegaze_server.main:app",
        host="0.0.0.0",
        port=9090,
        reload=True,
        log_level="info",
    )
