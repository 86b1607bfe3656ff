import logging
from typing import Callable, List, NamedTuple, Optional, Protocol

from images import encode_image, to_data_url
from models import AssessmentResult, Disease, TreatmentPlan
from treatment import TreatmentGenerator, generate_treatment_plan

logger = logging.getLogger(__name__)


class Diagnoser(Protocol):
    def assess_health(self, image_url: str) -> List[Disease]:
        ...


class AssessmentOutcome(NamedTuple):
    result: AssessmentResult
    used_fallback: bool


def run_assessment(
    image_bytes: bytes,
    diagnoser: Diagnoser,
    generator: TreatmentGenerator,
    on_diagnosis: Optional[Callable[[AssessmentResult], None]] = None,
) -> AssessmentOutcome:
    """
    Diagnose the image, then ask for a treatment plan.

    DiagnosisError from the diagnoser propagates and the generator is never
    called. Treatment failures never propagate; the fallback plan is used.
    `on_diagnosis` receives the result with an empty plan as soon as the
    diseases are known.
    """
    image_url = to_data_url(encode_image(image_bytes))

    diseases = diagnoser.assess_health(image_url)
    result = AssessmentResult(
        diseases=diseases,
        treatment_plan=TreatmentPlan.empty(),
        image_url=image_url,
    )
    if on_diagnosis is not None:
        on_diagnosis(result)

    outcome = generate_treatment_plan(generator, diseases)
    result = result.model_copy(update={"treatment_plan": outcome.plan})

    logger.info(
        f"Assessment finished: {len(diseases)} disease(s), "
        f"{'fallback' if outcome.used_fallback else 'generated'} treatment plan"
    )
    return AssessmentOutcome(result, outcome.used_fallback)
