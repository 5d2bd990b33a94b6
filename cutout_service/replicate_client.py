"""
Client for a Replicate-style predictions API.

A prediction is created with ``POST /predictions`` and then polled with
``GET /predictions/{id}`` at a fixed interval until it reaches ``succeeded``
or ``failed``. Any other status counts as still running. Polling stops early
when the attempt or wall-clock budget runs out, or when the caller sets the
cancel event.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import time
from typing import Any, Callable, Dict, Optional

import requests

from .config import Settings
from .exceptions import (
    ConfigurationError,
    PredictionCancelledError,
    PredictionFailedError,
    PredictionTimeoutError,
    StartupError,
)
from .imaging import to_data_url

logger = logging.getLogger(__name__)

STATUS_STARTING = "starting"
STATUS_SUCCEEDED = "succeeded"
STATUS_FAILED = "failed"
STATUS_CANCELED = "canceled"


@dataclass
class Prediction:
    id: str
    status: str = STATUS_STARTING
    output: Any = None
    error: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Prediction":
        return cls(
            id=str(payload["id"]),
            status=str(payload.get("status") or STATUS_STARTING),
            output=payload.get("output"),
            error=payload.get("error"),
            raw=payload,
        )


class ReplicateClient:
    def __init__(
        self,
        api_token: str,
        *,
        model_version: str,
        base_url: str = "https://api.replicate.com/v1",
        input_key: str = "image",
        poll_interval: float = 1.0,
        max_attempts: Optional[int] = None,
        timeout: Optional[float] = None,
        request_timeout: int = 30,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not api_token:
            raise ConfigurationError("An API token is required", config_key="REPLICATE_API_TOKEN")
        self.model_version = model_version
        self.base_url = base_url.rstrip("/")
        self.input_key = input_key
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.request_timeout = request_timeout
        self._session = session or requests.Session()
        self._headers = {"Authorization": f"Bearer {api_token}"}
        self._owns_session = session is None
        self._sleep = sleep
        self._clock = clock

    def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session:
            self._session.close()

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "ReplicateClient":
        if settings.replicate_api_token is None:
            raise ConfigurationError(
                "REPLICATE_API_TOKEN is not configured", config_key="REPLICATE_API_TOKEN"
            )
        return cls(
            settings.replicate_api_token.get_secret_value(),
            model_version=settings.replicate_model_version,
            base_url=settings.replicate_api_base_url,
            input_key=settings.replicate_input_key,
            poll_interval=settings.poll_interval_seconds,
            max_attempts=settings.poll_max_attempts,
            timeout=settings.poll_timeout_seconds,
            request_timeout=settings.request_timeout_seconds,
            **kwargs,
        )

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def create_prediction(self, image_ref: str) -> Prediction:
        body = {"version": self.model_version, "input": {self.input_key: image_ref}}
        resp = self._session.post(
            self._url("predictions"),
            json=body,
            headers=self._headers,
            timeout=(5, self.request_timeout),
        )
        try:
            payload = resp.json()
        except ValueError as exc:
            raise StartupError(
                f"Failed to start prediction (HTTP {resp.status_code}, non-JSON response)"
            ) from exc

        if not isinstance(payload, dict) or not payload.get("id"):
            detail = payload.get("detail") if isinstance(payload, dict) else None
            message = "Failed to start prediction"
            if detail:
                message = f"{message}: {detail}"
            raise StartupError(message)

        prediction = Prediction.from_payload(payload)
        logger.info("prediction %s created status=%s", prediction.id, prediction.status)
        return prediction

    def get_prediction(self, prediction_id: str) -> Prediction:
        resp = self._session.get(
            self._url(f"predictions/{prediction_id}"),
            headers=self._headers,
            timeout=(5, self.request_timeout),
        )
        resp.raise_for_status()
        payload = resp.json()
        payload.setdefault("id", prediction_id)
        return Prediction.from_payload(payload)

    def cancel_prediction(self, prediction_id: str) -> None:
        """Best-effort remote cancel; errors are logged, never raised."""
        try:
            resp = self._session.post(
                self._url(f"predictions/{prediction_id}/cancel"),
                headers=self._headers,
                timeout=(5, self.request_timeout),
            )
            resp.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("prediction %s: remote cancel failed: %s", prediction_id, exc)

    def _wait(self, cancel_event) -> bool:
        """Wait one poll interval; return True if cancellation was requested."""
        if cancel_event is None:
            self._sleep(self.poll_interval)
            return False
        return cancel_event.wait(self.poll_interval)

    def wait_for_prediction(self, prediction: Prediction, cancel_event=None) -> Prediction:
        """
        Poll until the prediction is terminal.

        Args:
            prediction: The job returned by `create_prediction`.
            cancel_event: Optional `threading.Event`; setting it aborts the loop.

        Raises:
            PredictionFailedError: the job reported ``failed`` or ``canceled``.
            PredictionTimeoutError: `max_attempts` polls or `timeout` seconds elapsed.
            PredictionCancelledError: `cancel_event` was set.
        """
        started = self._clock()
        attempts = 0
        while True:
            if cancel_event is not None and cancel_event.is_set():
                self.cancel_prediction(prediction.id)
                raise PredictionCancelledError(prediction_id=prediction.id)

            current = self.get_prediction(prediction.id)
            attempts += 1
            logger.debug("prediction %s poll=%d status=%s", current.id, attempts, current.status)

            if current.status == STATUS_SUCCEEDED:
                logger.info("prediction %s succeeded after %d polls", current.id, attempts)
                return current
            if current.status in (STATUS_FAILED, STATUS_CANCELED):
                raise PredictionFailedError(
                    "Prediction failed" if current.status == STATUS_FAILED else "Prediction was canceled",
                    prediction_id=current.id,
                    remote_error=current.error,
                )

            if self.max_attempts is not None and attempts >= self.max_attempts:
                self.cancel_prediction(current.id)
                raise PredictionTimeoutError(
                    f"Prediction did not finish after {attempts} polls", prediction_id=current.id
                )
            elapsed = self._clock() - started
            if self.timeout is not None and elapsed >= self.timeout:
                self.cancel_prediction(current.id)
                raise PredictionTimeoutError(
                    f"Prediction did not finish within {self.timeout:g}s", prediction_id=current.id
                )

            if self._wait(cancel_event):
                self.cancel_prediction(current.id)
                raise PredictionCancelledError(prediction_id=current.id)

    def remove_background(
        self,
        image_bytes: bytes,
        content_type: str = "application/octet-stream",
        cancel_event=None,
    ) -> Any:
        """Run the model on `image_bytes` and return the prediction output verbatim."""
        prediction = self.create_prediction(to_data_url(image_bytes, content_type))
        return self.wait_for_prediction(prediction, cancel_event=cancel_event).output
