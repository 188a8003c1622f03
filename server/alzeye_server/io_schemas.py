from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RiskCategory(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    INCONCLUSIVE = "inconclusive"


class ClassificationPair(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    probability: float = Field(ge=0.0, le=1.0)


class EffectiveResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    score: float = Field(ge=0.0, le=1.0)


class NarrativeContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    score: float
    percent: int = Field(ge=0, le=100)
    category: RiskCategory


class RiskNarrative(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    interpretation: str
    visualization: str
    next_steps: str = Field(alias="nextSteps")

    @field_validator("interpretation", "visualization", "next_steps")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("narrative field must not be blank")
        return v.strip()


class PredictResponse(BaseModel):
    case_id: str
    predictions: List[ClassificationPair]
    effective: EffectiveResult
    risk_category: RiskCategory
    confidence_percent: int


class InterpretResponse(BaseModel):
    effective: EffectiveResult
    risk_category: RiskCategory
    confidence_percent: int
    narrative: RiskNarrative


class AnalyzeResponse(PredictResponse):
    narrative: RiskNarrative


class ErrorResponse(BaseModel):
    error: str
    detail: str


class HealthInfo(BaseModel):
    status: str
    device: str
    classifier_loaded: bool
    load_error: Optional[str] = None


class VersionInfo(BaseModel):
    api_version: str
    model_version: Optional[str] = None
    labels: List[str] = []
    text_model: str
    categories: List[RiskCategory]
