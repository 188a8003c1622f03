"""Shared test fixtures for AlzEye Predict."""

import io
import json
from typing import List

import numpy as np
import pytest
from PIL import Image

from alzeye_server.io_schemas import ClassificationPair


def pairs(*items) -> List[ClassificationPair]:
    return [ClassificationPair(label=l, probability=p) for l, p in items]


NARRATIVE_JSON = json.dumps({
    "interpretation": "The scan was classified with high confidence.",
    "visualization": "Risk Level: 82% Confidence in 'Glaucoma' Classification.",
    "nextSteps": "Consult an ophthalmologist.",
})


class FakeGenerator:
    """Records every prompt and replies with a canned string or raises."""

    def __init__(self, reply: str = NARRATIVE_JSON, error: Exception = None):
        self.reply = reply
        self.error = error
        self.prompts = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


class FakeClassifier:
    labels = ["Normal", "Glaucoma"]
    version = "fake.v1"

    def __init__(self, result: List[ClassificationPair] = None, error: Exception = None):
        self.result = result if result is not None else pairs(("Glaucoma", 0.82), ("Normal", 0.18))
        self.error = error
        self.calls = 0

    def predict(self, img):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def fake_generator():
    return FakeGenerator()


@pytest.fixture
def png_bytes():
    """A small random RGB PNG, standing in for an uploaded eye image."""
    img = Image.fromarray(np.random.randint(0, 255, (32, 32, 3), dtype=np.uint8))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
