from decimal import ROUND_HALF_UP, Decimal

from models import AssessmentResult, DiseaseView, ResultView, TreatmentSectionView

TREATMENT_SECTIONS = [
    ("Immediate Steps", "immediate_steps"),
    ("Long-term Prevention", "long_term_prevention"),
    ("Organic Alternatives", "organic_alternatives"),
    ("Chemical Solutions", "chemical_solutions"),
]


def format_confidence(probability: float) -> str:
    """
    0.823 -> '82.3%'. Ties round up (0.0625 -> '6.3%'), computed on the
    exact binary value of probability * 100.
    """
    scaled = Decimal(probability * 100).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return f"{scaled}%"


def render_result(result: AssessmentResult, is_generating_treatment: bool = False) -> ResultView:
    diseases = [
        DiseaseView(
            name=d.name,
            confidence=format_confidence(d.probability),
            progress=round(d.probability * 100, 1),
            description=d.description,
        )
        for d in result.diseases
    ]

    sections = []
    if not is_generating_treatment:
        plan = result.treatment_plan
        sections = [
            TreatmentSectionView(title=title, items=list(getattr(plan, field)))
            for title, field in TREATMENT_SECTIONS
        ]

    return ResultView(
        diseases=diseases,
        treatment_loading=is_generating_treatment,
        treatment_sections=sections,
    )
