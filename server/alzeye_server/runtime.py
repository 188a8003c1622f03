import io
import json
import logging
from pathlib import Path
from typing import List, Protocol, Sequence

import numpy as np
from PIL import Image, UnidentifiedImageError

import torch
from monai.networks.nets import resnet18 as monai_resnet18

from .errors import ClassifierFailure, InputUnavailable
from .io_schemas import ClassificationPair

logger = logging.getLogger(__name__)


# ---------- Utilities ----------
def bytes_to_image(b: bytes) -> Image.Image:
    """Decode uploaded bytes (JPG/PNG/...) into an RGB image."""
    if not b:
        raise InputUnavailable("Please upload an image before requesting a prediction.")
    try:
        img = Image.open(io.BytesIO(b))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise InputUnavailable(f"Could not read the uploaded image: {e}") from e
    return img.convert("RGB")


def _to_tensor(img: Image.Image, size: int) -> torch.Tensor:
    # pixels scaled to [-1, 1], (1, 3, H, W)
    arr = np.asarray(img.resize((size, size), Image.Resampling.BILINEAR), dtype=np.float32)
    arr = arr / 127.5 - 1.0
    return torch.from_numpy(arr.transpose(2, 0, 1).copy())[None]


# ---------- Classifier ----------
class ImageClassifier(Protocol):
    def predict(self, img: Image.Image) -> List[ClassificationPair]:
        ...


class TorchImageClassifier:
    """Wraps a loaded torch model and its label list."""

    def __init__(self, model: torch.nn.Module, labels: Sequence[str], device, image_size: int = 224,
                 version: str = ""):
        self.model = model.to(device).eval()
        self.labels = list(labels)
        self.device = device
        self.image_size = image_size
        self.version = version

    @torch.inference_mode()
    def predict(self, img: Image.Image) -> List[ClassificationPair]:
        x = _to_tensor(img, self.image_size).to(self.device)
        try:
            logits = self.model(x)
        except RuntimeError as e:
            raise ClassifierFailure(f"Prediction failed: {e}") from e
        probs = torch.softmax(logits, 1)[0].detach().cpu().numpy()
        if probs.shape[0] != len(self.labels):
            raise ClassifierFailure(
                f"Model produced {probs.shape[0]} scores for {len(self.labels)} labels."
            )
        pairs = [
            ClassificationPair(label=l, probability=min(max(float(p), 0.0), 1.0))
            for l, p in zip(self.labels, probs)
        ]
        if not pairs:
            raise ClassifierFailure(
                "Could not determine a primary class from model output. "
                "Predictions array might be empty or contain unexpected classes."
            )
        return pairs


# ---------- Model loading ----------
def load_classifier(manifest_path: Path, device) -> TorchImageClassifier:
    manifest_path = Path(manifest_path)
    try:
        cfg = json.loads(manifest_path.read_text())
        labels = cfg["labels"]
        ckpt = manifest_path.parent / cfg["classifier_ckpt"]
        model = monai_resnet18(spatial_dims=2, n_input_channels=3, num_classes=len(labels))
        model.load_state_dict(torch.load(ckpt, map_location=device))
    except (OSError, KeyError, ValueError, RuntimeError) as e:
        raise ClassifierFailure(f"Failed to load the AI model: {e}") from e

    logger.info("loaded classifier %s with labels %s", ckpt.name, labels)
    return TorchImageClassifier(
        model, labels, device,
        image_size=int(cfg.get("image_size", 224)),
        version=cfg.get("version", ""),
    )
