from enum import Enum
from pydantic import BaseModel, Field
from typing import List, Literal, Optional


class Disease(BaseModel):
    """A candidate disease reported by the diagnostic service."""
    name: str
    probability: float = Field(ge=0.0, le=1.0, description="Confidence score between 0.0 and 1.0")
    description: Optional[str] = None
    treatment: Optional[str] = None


class TreatmentPlan(BaseModel):
    """Four ordered lists of recommendations."""
    immediate_steps: List[str] = Field(default_factory=list)
    long_term_prevention: List[str] = Field(default_factory=list)
    organic_alternatives: List[str] = Field(default_factory=list)
    chemical_solutions: List[str] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "TreatmentPlan":
        return cls()

    def is_empty(self) -> bool:
        return not (
            self.immediate_steps
            or self.long_term_prevention
            or self.organic_alternatives
            or self.chemical_solutions
        )


class AssessmentResult(BaseModel):
    diseases: List[Disease]
    treatment_plan: TreatmentPlan = Field(default_factory=TreatmentPlan.empty)
    image_url: str = Field(description="Data URL of the uploaded image, used as the preview")


class TreatmentRequest(BaseModel):
    """Request body for the treatment generation endpoint."""
    diseases: List[Disease]
    prompt: str = Field(min_length=1)


class Notification(BaseModel):
    title: str
    description: str
    variant: Literal["default", "destructive"] = "default"


class AssessmentState(str, Enum):
    IDLE = "idle"
    IMAGE_SELECTED = "image_selected"
    ASSESSING = "assessing"
    TREATMENT_PENDING = "treatment_pending"
    COMPLETE = "complete"


class DiseaseView(BaseModel):
    name: str
    confidence: str = Field(description='Probability scaled by 100 with one decimal, e.g. "82.3%"')
    progress: float = Field(ge=0.0, le=100.0)
    description: Optional[str] = None


class TreatmentSectionView(BaseModel):
    title: str
    items: List[str]


class ResultView(BaseModel):
    diseases: List[DiseaseView]
    treatment_loading: bool
    treatment_sections: List[TreatmentSectionView]


class AssessmentResponse(BaseModel):
    """Response model for the one-shot assessment endpoint."""
    result: AssessmentResult
    used_fallback: bool
    view: ResultView


class SessionSnapshot(BaseModel):
    session_id: str
    state: AssessmentState
    is_loading: bool
    is_generating_treatment: bool
    active_tab: Literal["diseases", "treatment"]
    filename: Optional[str] = None
    result: Optional[AssessmentResult] = None
    view: Optional[ResultView] = None
    notifications: List[Notification] = Field(default_factory=list)


class TabSelection(BaseModel):
    tab: Literal["diseases", "treatment"]


class ErrorResponse(BaseModel):
    """Error response model."""
    detail: str = Field(description="Error message")
