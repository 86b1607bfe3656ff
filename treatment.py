"""
Treatment plan generation with a fixed fallback.

The generation service is asked for four lists of recommendations. Whatever
goes wrong on that side, the caller always gets a complete TreatmentPlan back:
either the generated one or FALLBACK_TREATMENT_PLAN.
"""
import json
import logging
import re
from typing import Any, Dict, List, NamedTuple, Protocol

from pydantic import ValidationError

from exceptions import TreatmentGenerationError, TreatmentPlanFormatError
from models import Disease, TreatmentPlan
from views import format_confidence

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "immediate_steps",
    "long_term_prevention",
    "organic_alternatives",
    "chemical_solutions",
)

FALLBACK_TREATMENT_PLAN = TreatmentPlan(
    immediate_steps=[
        "Isolate affected plants to prevent spread",
        "Remove and destroy severely infected parts",
        "Monitor plant health daily",
    ],
    long_term_prevention=[
        "Maintain proper plant spacing for air circulation",
        "Follow recommended watering practices",
        "Regular inspection of plants",
    ],
    organic_alternatives=[
        "Use neem oil solution",
        "Apply baking soda spray",
        "Try garlic-based natural fungicide",
    ],
    chemical_solutions=[
        "Consult with a local agricultural expert for specific chemical treatments",
        "Follow safety guidelines when using chemical treatments",
    ],
)


class TreatmentGenerator(Protocol):
    def generate_treatment_plan(self, diseases: List[Disease], prompt: str) -> Any:
        ...


class TreatmentOutcome(NamedTuple):
    plan: TreatmentPlan
    used_fallback: bool


def build_treatment_prompt(diseases: List[Disease]) -> str:
    summary = ", ".join(
        f"{d.name} ({format_confidence(d.probability)} confidence)" for d in diseases
    )
    return f"""Act as a plant pathologist. For these detected diseases: {summary}.
Provide:
1. Immediate treatment steps
2. Long-term prevention strategies
3. Organic alternatives
4. Chemical solutions (if necessary)
Format as JSON with markdown formatting in descriptions, using exactly these keys:
immediate_steps, long_term_prevention, organic_alternatives, chemical_solutions.
Each key must map to a list of strings."""


def parse_plan_text(response_text: str) -> Dict[str, Any]:
    """
    Pull the JSON object out of a model reply. Thinking blocks and
    markdown code fences are stripped first.
    """
    if "</think>" in response_text:
        response_text = response_text.split("</think>")[-1]
    response_text = response_text.strip()

    fence = re.search(r"```(?:json)?\s*(.*?)```", response_text, re.DOTALL)
    if fence:
        response_text = fence.group(1).strip()
    else:
        start, end = response_text.find("{"), response_text.rfind("}")
        if start != -1 and end > start:
            response_text = response_text[start:end + 1]

    try:
        data = json.loads(response_text)
    except json.JSONDecodeError as e:
        raise TreatmentGenerationError(f"Failed to parse AI response as JSON. Raw text: '{response_text}' Error: {e}")

    if not isinstance(data, dict):
        raise TreatmentPlanFormatError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def validate_treatment_plan(data: Any) -> TreatmentPlan:
    """
    Check that all four lists are present. An empty list counts as present;
    a missing or null field does not.
    """
    if not isinstance(data, dict):
        raise TreatmentPlanFormatError(f"Expected a JSON object, got {type(data).__name__}")

    missing = [field for field in REQUIRED_FIELDS if data.get(field) is None]
    if missing:
        raise TreatmentPlanFormatError(f"Invalid treatment plan format, missing: {', '.join(missing)}")

    try:
        plan = TreatmentPlan(**{field: data[field] for field in REQUIRED_FIELDS})
    except ValidationError as e:
        raise TreatmentPlanFormatError(f"Invalid treatment plan format: {e}")

    # an all-empty plan cannot be told apart from a pending one
    if plan.is_empty():
        raise TreatmentPlanFormatError("Invalid treatment plan format: all four lists are empty")
    return plan


def generate_treatment_plan(generator: TreatmentGenerator, diseases: List[Disease]) -> TreatmentOutcome:
    """Ask the generator for a plan, substituting the fallback on any failure."""
    prompt = build_treatment_prompt(diseases)
    try:
        data = generator.generate_treatment_plan(diseases, prompt)
        plan = validate_treatment_plan(data)
    except TreatmentGenerationError as e:
        logger.warning(f"Error generating treatment plan, using fallback: {e}")
        return TreatmentOutcome(FALLBACK_TREATMENT_PLAN.model_copy(deep=True), True)
    except Exception as e:
        logger.error(f"Unexpected error generating treatment plan, using fallback: {e}", exc_info=True)
        return TreatmentOutcome(FALLBACK_TREATMENT_PLAN.model_copy(deep=True), True)

    return TreatmentOutcome(plan, False)
