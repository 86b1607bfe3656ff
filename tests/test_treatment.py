"""
Tests for treatment plan prompt, validation and fallback substitution
"""
import pytest

from conftest import GENERATED_PLAN, FakeGenerator
from exceptions import TreatmentGenerationError, TreatmentPlanFormatError
from models import Disease, TreatmentPlan
from treatment import (
    FALLBACK_TREATMENT_PLAN,
    REQUIRED_FIELDS,
    build_treatment_prompt,
    generate_treatment_plan,
    parse_plan_text,
    validate_treatment_plan,
)


class TestPrompt:
    def test_lists_each_disease_with_confidence(self):
        prompt = build_treatment_prompt([
            Disease(name="Early blight", probability=0.823),
            Disease(name="Leaf mold", probability=0.05),
        ])
        assert "For these detected diseases: Early blight (82.3% confidence), Leaf mold (5.0% confidence)." in prompt
        assert prompt.startswith("Act as a plant pathologist.")
        assert "4. Chemical solutions (if necessary)" in prompt

    def test_confidence_ties_round_up(self):
        prompt = build_treatment_prompt([Disease(name="Leaf rust", probability=0.0625)])
        assert "Leaf rust (6.3% confidence)" in prompt

    def test_empty_disease_list(self):
        prompt = build_treatment_prompt([])
        assert "For these detected diseases: ." in prompt


class TestValidation:
    def test_accepts_complete_plan(self):
        plan = validate_treatment_plan(GENERATED_PLAN)
        assert plan.immediate_steps == GENERATED_PLAN["immediate_steps"]
        assert plan.chemical_solutions == GENERATED_PLAN["chemical_solutions"]

    def test_empty_list_counts_as_present(self):
        data = dict(GENERATED_PLAN, chemical_solutions=[])
        assert validate_treatment_plan(data).chemical_solutions == []

    @pytest.mark.parametrize("field", REQUIRED_FIELDS)
    def test_missing_field_rejected(self, field):
        data = {k: v for k, v in GENERATED_PLAN.items() if k != field}
        with pytest.raises(TreatmentPlanFormatError, match=field):
            validate_treatment_plan(data)

    def test_null_field_rejected(self):
        with pytest.raises(TreatmentPlanFormatError):
            validate_treatment_plan(dict(GENERATED_PLAN, organic_alternatives=None))

    def test_non_list_field_rejected(self):
        with pytest.raises(TreatmentPlanFormatError):
            validate_treatment_plan(dict(GENERATED_PLAN, immediate_steps="water less"))

    def test_all_empty_plan_rejected(self):
        with pytest.raises(TreatmentPlanFormatError):
            validate_treatment_plan({field: [] for field in REQUIRED_FIELDS})

    def test_non_object_rejected(self):
        with pytest.raises(TreatmentPlanFormatError):
            validate_treatment_plan(["immediate_steps"])


class TestParsePlanText:
    def test_plain_json(self):
        assert parse_plan_text('{"immediate_steps": ["a"]}') == {"immediate_steps": ["a"]}

    def test_code_fence_and_thinking_are_stripped(self):
        text = '<think>hmm</think>\nHere you go:\n```json\n{"chemical_solutions": ["b"]}\n```'
        assert parse_plan_text(text) == {"chemical_solutions": ["b"]}

    def test_surrounding_prose(self):
        assert parse_plan_text('Sure! {"a": 1} Hope this helps.') == {"a": 1}

    def test_garbage_raises(self):
        with pytest.raises(TreatmentGenerationError):
            parse_plan_text("no plan today")


class TestGenerateTreatmentPlan:
    def test_generated_plan_is_used(self, blight):
        generator = FakeGenerator()
        outcome = generate_treatment_plan(generator, [blight])
        assert outcome.used_fallback is False
        assert outcome.plan == TreatmentPlan(**GENERATED_PLAN)
        diseases, prompt = generator.requests[0]
        assert diseases == [blight]
        assert "Early blight (82.3% confidence)" in prompt

    @pytest.mark.parametrize("field", REQUIRED_FIELDS)
    def test_missing_field_gives_exact_fallback(self, blight, field):
        response = {k: v for k, v in GENERATED_PLAN.items() if k != field}
        outcome = generate_treatment_plan(FakeGenerator(response=response), [blight])
        assert outcome.used_fallback is True
        assert outcome.plan == FALLBACK_TREATMENT_PLAN

    def test_unreachable_service_gives_fallback(self):
        generator = FakeGenerator(error=TreatmentGenerationError("Failed to connect"))
        outcome = generate_treatment_plan(generator, [Disease(name="Rust", probability=0.5)])
        assert outcome.used_fallback is True
        assert outcome.plan == FALLBACK_TREATMENT_PLAN

    def test_unexpected_error_gives_fallback(self, blight):
        outcome = generate_treatment_plan(FakeGenerator(error=RuntimeError("boom")), [blight])
        assert outcome.plan == FALLBACK_TREATMENT_PLAN

    def test_fallback_is_not_shared(self, blight):
        generator = FakeGenerator(error=TreatmentGenerationError("down"))
        outcome = generate_treatment_plan(generator, [blight])
        outcome.plan.immediate_steps.append("extra")
        assert len(FALLBACK_TREATMENT_PLAN.immediate_steps) == 3

    def test_zero_diseases_still_attempted(self):
        generator = FakeGenerator()
        generate_treatment_plan(generator, [])
        assert len(generator.requests) == 1
        diseases, prompt = generator.requests[0]
        assert diseases == []
        assert "For these detected diseases: ." in prompt


def test_fallback_plan_contents():
    assert FALLBACK_TREATMENT_PLAN.immediate_steps == [
        "Isolate affected plants to prevent spread",
        "Remove and destroy severely infected parts",
        "Monitor plant health daily",
    ]
    assert len(FALLBACK_TREATMENT_PLAN.long_term_prevention) == 3
    assert len(FALLBACK_TREATMENT_PLAN.organic_alternatives) == 3
    assert FALLBACK_TREATMENT_PLAN.chemical_solutions == [
        "Consult with a local agricultural expert for specific chemical treatments",
        "Follow safety guidelines when using chemical treatments",
    ]
