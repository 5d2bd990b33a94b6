"""
FastAPI layer exposing the submission workflow.

Endpoints:
 - GET /health
 - POST /submissions
 - POST /submissions/download
"""

from __future__ import annotations

from functools import lru_cache
import logging
from pathlib import PurePath
from typing import Any, List, Optional

from fastapi import Depends, FastAPI, File, Form, UploadFile
from fastapi.responses import JSONResponse, RedirectResponse, Response
from pydantic import BaseModel

from . import config
from .exceptions import ValidationError
from .imaging import decode_data_url
from .object_urls import ObjectUrlRegistry
from .replicate_client import ReplicateClient
from .submission import SubmissionProcessor, SubmissionResult, UploadedFile

settings = config.get_settings()
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="Cutout Service", version="0.1.0")

_registry = ObjectUrlRegistry()


class NotificationModel(BaseModel):
    level: str
    message: str


class SubmissionResponse(BaseModel):
    state: str
    previewImage: Optional[Any] = None
    foregroundImage: Optional[Any] = None
    downloadReady: bool = False
    error: Optional[str] = None
    notifications: List[NotificationModel] = []


@lru_cache()
def get_remover() -> Optional[ReplicateClient]:
    """Return one shared client so every request reuses the same HTTP session."""
    token = settings.replicate_api_token
    if token is None or not token.get_secret_value():
        logger.warning("REPLICATE_API_TOKEN not set; background removal is unavailable")
        return None
    return ReplicateClient.from_settings(settings)


def get_processor() -> SubmissionProcessor:
    return SubmissionProcessor(
        remover=get_remover(),
        registry=_registry,
        request_timeout=settings.request_timeout_seconds,
    )


def _to_uploaded_file(upload: Optional[UploadFile]) -> Optional[UploadedFile]:
    if upload is None:
        return None
    return UploadedFile(
        data=upload.file.read(),
        filename=upload.filename or "upload",
        content_type=upload.content_type or "application/octet-stream",
    )


def _status_for(result: SubmissionResult) -> int:
    if result.ok:
        return 200
    if isinstance(result.exception, ValidationError):
        return 422
    return 502


def _to_response(result: SubmissionResult) -> SubmissionResponse:
    return SubmissionResponse(
        state=result.state.value,
        previewImage=result.preview_image,
        foregroundImage=result.foreground_image,
        downloadReady=result.download_ready,
        error=result.error,
        notifications=[
            NotificationModel(level=n.level, message=n.message) for n in result.notifications
        ],
    )


def _json(result: SubmissionResult) -> JSONResponse:
    return JSONResponse(status_code=_status_for(result), content=_to_response(result).model_dump())


def _run_submission(
    processor: SubmissionProcessor,
    file: Optional[UploadFile],
    remove_bg: Optional[str],
    background_option: Optional[str],
    background_color: Optional[str],
    background_file: Optional[UploadFile],
) -> SubmissionResult:
    fields = {
        "file": _to_uploaded_file(file),
        "remove_bg": remove_bg,
        "background_option": background_option,
        "background_color": background_color,
        "background_file": _to_uploaded_file(background_file),
    }
    return processor.process_form(
        fields,
        default_option=settings.default_background_option,
        default_color=settings.default_background_color,
    )


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/submissions", response_model=SubmissionResponse)
def submit(
    file: Optional[UploadFile] = File(None),
    remove_bg: Optional[str] = Form(None),
    background_option: Optional[str] = Form(None),
    background_color: Optional[str] = Form(None),
    background_file: Optional[UploadFile] = File(None),
    processor: SubmissionProcessor = Depends(get_processor),
):
    result = _run_submission(
        processor, file, remove_bg, background_option, background_color, background_file
    )
    return _json(result)


@app.post("/submissions/download")
def download(
    file: Optional[UploadFile] = File(None),
    remove_bg: Optional[str] = Form(None),
    background_option: Optional[str] = Form(None),
    background_color: Optional[str] = Form(None),
    background_file: Optional[UploadFile] = File(None),
    processor: SubmissionProcessor = Depends(get_processor),
):
    result = _run_submission(
        processor, file, remove_bg, background_option, background_color, background_file
    )
    if not result.ok:
        return _json(result)

    preview = result.preview_image
    if isinstance(preview, str) and preview.startswith("data:"):
        mime_type, payload = decode_data_url(preview)
        stem = PurePath(file.filename or "image").stem if file is not None else "image"
        return Response(
            content=payload,
            media_type=mime_type,
            headers={"Content-Disposition": f'attachment; filename="{stem}-edited.png"'},
        )
    if isinstance(preview, str) and preview.startswith(("http://", "https://")):
        return RedirectResponse(preview, status_code=307)

    logger.error("Rendered output has an unsupported format: %r", type(preview).__name__)
    return JSONResponse(
        status_code=502,
        content={"state": "error", "error": "Error processing image: unsupported output format"},
    )
