"""
Per-session submission state with last-submission-wins semantics.

Each image submission gets a generation token from ``SubmissionTracker.begin``.
Results recorded under any token other than the latest are dropped, so a slow
request for an earlier image can never overwrite the result of a newer one.
The last fully interpreted submission is kept separately and survives later
failures.
"""

import logging
import threading
from dataclasses import dataclass, replace
from typing import Optional

from alzeye_server.errors import ScreeningError
from alzeye_server.io_schemas import InterpretResponse, PredictResponse

from .api import ScreeningApiClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Submission:
    token: int
    image_name: str
    image_bytes: bytes
    prediction: Optional[PredictResponse] = None
    interpretation: Optional[InterpretResponse] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def complete(self) -> bool:
        return self.prediction is not None and self.interpretation is not None


class SubmissionTracker:
    def __init__(self):
        self._lock = threading.Lock()
        self._generation = 0
        self._current: Optional[Submission] = None
        self._last_complete: Optional[Submission] = None

    @property
    def current(self) -> Optional[Submission]:
        return self._current

    @property
    def last_complete(self) -> Optional[Submission]:
        return self._last_complete

    def begin(self, image_name: str, image_bytes: bytes) -> int:
        with self._lock:
            self._generation += 1
            self._current = Submission(self._generation, image_name, image_bytes)
            return self._generation

    def is_current(self, token: int) -> bool:
        return token == self._generation

    def get(self, token: int) -> Optional[Submission]:
        cur = self._current
        return cur if cur is not None and cur.token == token else None

    def _update(self, token: int, **changes) -> bool:
        with self._lock:
            if self._current is None or token != self._generation:
                logger.info("discarding result of stale submission %d (latest is %d)", token, self._generation)
                return False
            self._current = replace(self._current, **changes)
            if self._current.complete and self._current.error is None:
                self._last_complete = self._current
            return True

    def record_prediction(self, token: int, prediction: PredictResponse) -> bool:
        return self._update(token, prediction=prediction)

    def record_interpretation(self, token: int, interpretation: InterpretResponse) -> bool:
        return self._update(token, interpretation=interpretation)

    def record_error(self, token: int, err: ScreeningError) -> bool:
        return self._update(token, error=err.user_message, error_kind=err.kind)


def check_model(client: ScreeningApiClient) -> Optional[str]:
    """User-visible problem with the classifier service, or None when it is ready."""
    try:
        info = client.health()
    except ScreeningError as e:
        logger.error("health check failed [%s]: %s", e.kind, e.message)
        return e.user_message
    if not info.classifier_loaded:
        logger.error("classifier not loaded: %s", info.load_error)
        return info.load_error or "The AI model is not loaded yet. Please try again shortly."
    return None


def run_submission(client: ScreeningApiClient, tracker: SubmissionTracker,
                   image_name: str, image_bytes: bytes) -> Optional[Submission]:
    """
    Predict then interpret one uploaded image.

    Returns the submission as recorded, or None if a newer submission
    superseded this one while it was in flight.
    """
    token = tracker.begin(image_name, image_bytes)
    try:
        prediction = client.predict(image_name, image_bytes)
        if not tracker.record_prediction(token, prediction):
            return None
        interpretation = client.interpret(prediction.effective)
        tracker.record_interpretation(token, interpretation)
    except ScreeningError as e:
        logger.error("submission %d failed [%s]: %s", token, e.kind, e.message)
        tracker.record_error(token, e)
    return tracker.get(token)
