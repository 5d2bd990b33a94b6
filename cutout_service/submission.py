"""
Submission processing: bytes in -> optional background removal -> compositing -> result out.

`SubmissionProcessor.process` is the main entry point used by both the HTTP
API and the local CLI. A submission walks an explicit state machine::

    idle -> validating -> removing_background | local_compositing
         -> [custom_background_compositing] -> done | error

Errors from any step are caught once, at the top of `process`, and turned
into a `SubmissionResult` carrying the message and a failure notification.
Temporary object URLs created for the uploads are revoked on every path.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from PIL import Image
import requests

from .compositing import composite_data_url, render_foreground_data_url
from .exceptions import (
    BackgroundRemovalError,
    ConfigurationError,
    CutoutServiceError,
    ValidationError,
)
from .imaging import load_image_reference
from .notifications import Notification, Notifier
from .object_urls import ObjectUrlRegistry, ObjectUrlScope

logger = logging.getLogger(__name__)

DEFAULT_BACKGROUND_COLOR = "#ffffff"


class BackgroundOption(str, Enum):
    TRANSPARENT = "transparent"
    COLOR = "color"
    IMAGE = "image"


class SubmissionState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    REMOVING_BACKGROUND = "removing_background"
    LOCAL_COMPOSITING = "local_compositing"
    CUSTOM_BACKGROUND_COMPOSITING = "custom_background_compositing"
    DONE = "done"
    ERROR = "error"


TERMINAL_STATES = frozenset({SubmissionState.DONE, SubmissionState.ERROR})


@dataclass
class UploadedFile:
    data: bytes
    filename: str = "upload"
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class Submission:
    file: Optional[UploadedFile]
    remove_bg: bool = False
    background_option: BackgroundOption = BackgroundOption.TRANSPARENT
    background_color: str = DEFAULT_BACKGROUND_COLOR
    background_file: Optional[UploadedFile] = None

    @property
    def wants_custom_background(self) -> bool:
        return (
            self.background_option is BackgroundOption.IMAGE
            and self.background_file is not None
            and self.background_file.size > 0
        )

    @classmethod
    def from_form(
        cls,
        fields: Mapping[str, Any],
        default_option: str = BackgroundOption.TRANSPARENT.value,
        default_color: str = DEFAULT_BACKGROUND_COLOR,
    ) -> "Submission":
        """
        Build a submission from form fields.

        `remove_bg` is a checkbox: only the value "on" enables it. Missing or
        empty `background_option`/`background_color` fall back to the defaults.
        """
        option_raw = fields.get("background_option") or default_option
        try:
            option = BackgroundOption(option_raw)
        except ValueError as exc:
            raise ValidationError(
                f"Unknown background option: {option_raw}", field="background_option"
            ) from exc

        return cls(
            file=fields.get("file"),
            remove_bg=fields.get("remove_bg") == "on",
            background_option=option,
            background_color=fields.get("background_color") or default_color,
            background_file=fields.get("background_file"),
        )


@dataclass
class SubmissionResult:
    state: SubmissionState
    preview_image: Optional[str] = None
    foreground_image: Optional[Any] = None
    download_ready: bool = False
    error: Optional[str] = None
    exception: Optional[BaseException] = field(default=None, repr=False)
    notifications: List[Notification] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state is SubmissionState.DONE


@dataclass
class _Run:
    """Mutable per-submission working state; discarded after `process` returns."""

    submission: Submission
    scope: ObjectUrlScope
    notifier: Notifier
    cancel_event: Any = None
    source_url: Optional[str] = None
    source_image: Optional[Image.Image] = None
    foreground: Optional[Any] = None
    output: Optional[Any] = None


def format_error(exc: BaseException) -> str:
    if isinstance(exc, ValidationError):
        return exc.message
    message = exc.message if isinstance(exc, CutoutServiceError) else str(exc)
    return f"Error processing image: {message}"


class SubmissionProcessor:
    """
    Runs submissions against an optional background remover.

    `remover` is anything with ``remove_background(image_bytes, content_type,
    cancel_event=None)``, normally a `ReplicateClient`. When it is None a
    submission asking for removal fails with a processing error.
    """

    def __init__(
        self,
        remover: Any = None,
        registry: Optional[ObjectUrlRegistry] = None,
        session: Optional[requests.Session] = None,
        request_timeout: int = 30,
    ):
        self.remover = remover
        self.registry = registry or ObjectUrlRegistry()
        self.session = session
        self.request_timeout = request_timeout
        self._steps: Dict[SubmissionState, Callable[[_Run], SubmissionState]] = {
            SubmissionState.IDLE: self._start,
            SubmissionState.VALIDATING: self._validate,
            SubmissionState.REMOVING_BACKGROUND: self._remove_background,
            SubmissionState.LOCAL_COMPOSITING: self._composite_locally,
            SubmissionState.CUSTOM_BACKGROUND_COMPOSITING: self._composite_custom_background,
        }
        unhandled = set(SubmissionState) - set(self._steps) - TERMINAL_STATES
        if unhandled:
            raise RuntimeError(f"No transition defined for states: {sorted(s.value for s in unhandled)}")

    def process(self, submission: Submission, cancel_event=None) -> SubmissionResult:
        notifier = Notifier()
        state = SubmissionState.IDLE
        with ObjectUrlScope(self.registry) as scope:
            run = _Run(submission=submission, scope=scope, notifier=notifier, cancel_event=cancel_event)
            try:
                while state not in TERMINAL_STATES:
                    logger.debug("submission state=%s", state.value)
                    state = self._steps[state](run)
            except Exception as exc:  # noqa: BLE001
                return self._failed(exc, notifier, state)

        notifier.success("Image converted successfully!")
        return SubmissionResult(
            state=SubmissionState.DONE,
            preview_image=run.output,
            foreground_image=run.foreground,
            download_ready=True,
            notifications=notifier.notifications,
        )

    def process_form(
        self,
        fields: Mapping[str, Any],
        default_option: str = BackgroundOption.TRANSPARENT.value,
        default_color: str = DEFAULT_BACKGROUND_COLOR,
        cancel_event=None,
    ) -> SubmissionResult:
        """Parse raw form fields and process them; bad fields become an error result."""
        try:
            submission = Submission.from_form(
                fields, default_option=default_option, default_color=default_color
            )
        except ValidationError as exc:
            return self._failed(exc, Notifier(), SubmissionState.IDLE)
        return self.process(submission, cancel_event=cancel_event)

    def _failed(
        self, exc: Exception, notifier: Notifier, state: SubmissionState
    ) -> SubmissionResult:
        if isinstance(exc, ValidationError):
            logger.info("Submission rejected: %s", exc.message)
        else:
            logger.exception("Image processing error in state %s: %s", state.value, exc)
        notifier.error("Failed to process image")
        return SubmissionResult(
            state=SubmissionState.ERROR,
            error=format_error(exc),
            exception=exc,
            notifications=notifier.notifications,
        )

    def _start(self, run: _Run) -> SubmissionState:
        return SubmissionState.VALIDATING

    def _validate(self, run: _Run) -> SubmissionState:
        upload = run.submission.file
        if upload is None or upload.size == 0:
            raise ValidationError("No file uploaded", field="file")

        run.notifier.success("Processing Image...")
        run.source_url = run.scope.create(upload.data)
        run.source_image = self._load(run.source_url)

        if run.submission.remove_bg:
            return SubmissionState.REMOVING_BACKGROUND
        return SubmissionState.LOCAL_COMPOSITING

    def _remove_background(self, run: _Run) -> SubmissionState:
        run.notifier.info("Removing background with Replicate AI...")
        upload = run.submission.file
        try:
            if self.remover is None:
                raise ConfigurationError("No background remover is configured")
            run.foreground = self.remover.remove_background(
                upload.data, upload.content_type, cancel_event=run.cancel_event
            )
        except Exception as exc:  # noqa: BLE001
            logger.error("Background removal failed: %s", exc)
            raise BackgroundRemovalError() from exc
        return self._after_foreground(run)

    def _composite_locally(self, run: _Run) -> SubmissionState:
        run.foreground = render_foreground_data_url(
            run.source_image,
            run.submission.background_option.value,
            run.submission.background_color,
        )
        return self._after_foreground(run)

    def _after_foreground(self, run: _Run) -> SubmissionState:
        run.output = run.foreground
        if run.submission.wants_custom_background:
            return SubmissionState.CUSTOM_BACKGROUND_COMPOSITING
        return SubmissionState.DONE

    def _composite_custom_background(self, run: _Run) -> SubmissionState:
        bg_upload = run.submission.background_file
        bg_url = run.scope.create(bg_upload.data)
        background = self._load(bg_url)
        foreground = self._load(run.foreground)
        run.output = composite_data_url(background, foreground)
        return SubmissionState.DONE

    def _load(self, ref: Any) -> Image.Image:
        return load_image_reference(
            ref, self.registry, session=self.session, timeout_seconds=self.request_timeout
        )
