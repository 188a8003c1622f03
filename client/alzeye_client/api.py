import logging

import requests

from alzeye_server.errors import (
    ERRORS_BY_KIND,
    ClassifierFailure,
    InputUnavailable,
    NarrativeGenerationFailure,
)
from alzeye_server.io_schemas import EffectiveResult, HealthInfo, InterpretResponse, PredictResponse

logger = logging.getLogger(__name__)


def _raise_for_error(r: requests.Response, fallback):
    if r.ok:
        return
    try:
        body = r.json()
    except ValueError:
        body = {}
    err_cls = ERRORS_BY_KIND.get(body.get("error") if isinstance(body, dict) else None, fallback)
    detail = body.get("detail") if isinstance(body, dict) else None
    if not isinstance(detail, str):
        # FastAPI's 422 detail is a list of validation errors
        detail = f"HTTP {r.status_code}: {detail or r.text[:200]}"
    raise err_cls(detail)


class ScreeningApiClient:
    """Thin wrapper around the inference server's HTTP API."""

    def __init__(self, base_url: str, timeout: float = 120):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout

    def _url(self, path: str) -> str:
        if not self.base_url:
            raise InputUnavailable("API_BASE is not configured.")
        return f"{self.base_url}{path}"

    def health(self) -> HealthInfo:
        try:
            r = requests.get(self._url("/health"), timeout=self.timeout)
        except requests.RequestException as e:
            raise ClassifierFailure(f"Could not reach the prediction service: {e}") from e
        _raise_for_error(r, ClassifierFailure)
        try:
            return HealthInfo.model_validate(r.json())
        except ValueError as e:
            raise ClassifierFailure(f"malformed health response: {e}") from e

    def predict(self, file_name: str, file_bytes: bytes) -> PredictResponse:
        if not file_bytes:
            raise InputUnavailable("Please upload an image and ensure the model is loaded.")
        files = {"file": (file_name, file_bytes)}
        try:
            r = requests.post(self._url("/predict"), files=files, timeout=self.timeout)
        except requests.RequestException as e:
            raise ClassifierFailure(f"Could not reach the prediction service: {e}") from e
        _raise_for_error(r, ClassifierFailure)
        try:
            return PredictResponse.model_validate(r.json())
        except ValueError as e:
            raise ClassifierFailure(f"malformed prediction response: {e}") from e

    def interpret(self, effective: EffectiveResult) -> InterpretResponse:
        try:
            r = requests.post(self._url("/interpret"), json=effective.model_dump(), timeout=self.timeout)
        except requests.RequestException as e:
            raise NarrativeGenerationFailure(f"Could not reach the interpretation service: {e}") from e
        _raise_for_error(r, NarrativeGenerationFailure)
        try:
            return InterpretResponse.model_validate(r.json())
        except ValueError as e:
            raise NarrativeGenerationFailure(f"malformed interpretation response: {e}") from e
