import logging
from contextlib import asynccontextmanager
from functools import lru_cache

import torch
from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from . import __version__
from .config import get_config
from .errors import ClassifierFailure, InputUnavailable, ScreeningError
from .io_schemas import (
    AnalyzeResponse,
    EffectiveResult,
    ErrorResponse,
    HealthInfo,
    InterpretResponse,
    PredictResponse,
    RiskCategory,
    VersionInfo,
)
from .narrative import RiskNarrator, confidence_percent, derive_risk_category
from .reducer import reduce_predictions, sort_predictions
from .runtime import ImageClassifier, bytes_to_image, load_classifier
from .textgen import GeminiTextGenerator

_cfg = get_config()
logging.basicConfig(level=_cfg["LOG_LEVEL"], format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

_device = torch.device(_cfg["DEVICE"] or ("cuda" if torch.cuda.is_available() else "cpu"))
_runtime = {"classifier": None, "load_error": None}


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        _runtime["classifier"] = load_classifier(_cfg["MANIFEST_PATH"], _device)
        _runtime["load_error"] = None
    except ClassifierFailure as e:
        # keep serving; /predict reports the load failure
        logger.error("classifier unavailable: %s", e.message)
        _runtime["load_error"] = e.message
    yield


app = FastAPI(title="AlzEye Predict API", version=__version__,
              description="Eye image screening + category-bound risk narrative",
              lifespan=lifespan)

app.add_middleware(CORSMiddleware, allow_origins=_cfg["CORS_ORIGINS"], allow_methods=["*"], allow_headers=["*"])


@app.exception_handler(ScreeningError)
async def screening_error_handler(request: Request, exc: ScreeningError):
    logger.warning("%s %s failed [%s]: %s", request.method, request.url.path, exc.kind, exc.message)
    body = ErrorResponse(error=exc.kind, detail=exc.user_message)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


def get_classifier() -> ImageClassifier:
    clf = _runtime["classifier"]
    if clf is None:
        if _runtime["load_error"]:
            raise ClassifierFailure(_runtime["load_error"])
        raise InputUnavailable("The AI model is not loaded yet. Please try again shortly.")
    return clf


@lru_cache(maxsize=1)
def get_narrator() -> RiskNarrator:
    return RiskNarrator(GeminiTextGenerator(
        api_key=_cfg["GEMINI_API_KEY"],
        model_name=_cfg["GEMINI_MODEL"],
        temperature=_cfg["GEMINI_TEMPERATURE"],
    ))


@app.get("/health", response_model=HealthInfo)
def health():
    return HealthInfo(
        status="ok",
        device=str(_device),
        classifier_loaded=_runtime["classifier"] is not None,
        load_error=_runtime["load_error"],
    )


@app.get("/version", response_model=VersionInfo)
def version():
    clf = _runtime["classifier"]
    return VersionInfo(
        api_version=__version__,
        model_version=getattr(clf, "version", None) or None,
        labels=list(getattr(clf, "labels", [])),
        text_model=_cfg["GEMINI_MODEL"],
        categories=list(RiskCategory),
    )


async def _predict(file: UploadFile, classifier: ImageClassifier) -> PredictResponse:
    img = bytes_to_image(await file.read())
    try:
        pairs = await run_in_threadpool(classifier.predict, img)
    except ScreeningError:
        raise
    except Exception as e:
        raise ClassifierFailure(str(e)) from e
    if not pairs:
        raise ClassifierFailure("Could not determine a primary class from model output.")

    effective = reduce_predictions(pairs)
    category = derive_risk_category(effective.label)
    logger.info("effective %s=%.3f -> %s", effective.label, effective.score, category.value)
    return PredictResponse(
        case_id=file.filename or "upload",
        predictions=sort_predictions(pairs),
        effective=effective,
        risk_category=category,
        confidence_percent=confidence_percent(effective.score),
    )


@app.post("/predict", response_model=PredictResponse)
async def predict(file: UploadFile = File(...), classifier: ImageClassifier = Depends(get_classifier)):
    return await _predict(file, classifier)


@app.post("/interpret", response_model=InterpretResponse)
async def interpret(effective: EffectiveResult, narrator: RiskNarrator = Depends(get_narrator)):
    return await run_in_threadpool(narrator.interpret, effective)


@app.post("/analyze", response_model=AnalyzeResponse)
async def analyze(file: UploadFile = File(...),
                  classifier: ImageClassifier = Depends(get_classifier),
                  narrator: RiskNarrator = Depends(get_narrator)):
    prediction = await _predict(file, classifier)
    result = await run_in_threadpool(narrator.interpret, prediction.effective)
    return AnalyzeResponse(**prediction.model_dump(), narrative=result.narrative)
