import io
import os
import sys

import pytest
from PIL import Image

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from exceptions import DiagnosisError, TreatmentGenerationError
from models import Disease


GENERATED_PLAN = {
    "immediate_steps": ["Prune blighted leaves", "Stop overhead watering"],
    "long_term_prevention": ["Rotate crops every season"],
    "organic_alternatives": ["Copper soap spray"],
    "chemical_solutions": ["Chlorothalonil, following label rates"],
}


class FakeDiagnoser:
    """Records calls into a shared log so tests can check ordering."""

    def __init__(self, diseases=None, error=None, calls=None):
        self.diseases = diseases if diseases is not None else []
        self.error = error
        self.calls = calls if calls is not None else []
        self.image_urls = []

    def assess_health(self, image_url):
        self.calls.append("diagnose")
        self.image_urls.append(image_url)
        if self.error:
            raise self.error
        return list(self.diseases)


class FakeGenerator:

    def __init__(self, response=None, error=None, calls=None):
        self.response = response if response is not None else dict(GENERATED_PLAN)
        self.error = error
        self.calls = calls if calls is not None else []
        self.requests = []

    def generate_treatment_plan(self, diseases, prompt):
        self.calls.append("generate")
        self.requests.append((list(diseases), prompt))
        if self.error:
            raise self.error
        return self.response


def make_image_bytes(fmt="PNG", size=(64, 48), color=(30, 140, 60)):
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def image_bytes():
    return make_image_bytes()


@pytest.fixture
def blight():
    return Disease(name="Early blight", probability=0.823, description="Fungal leaf spots")


@pytest.fixture
def call_log():
    return []


@pytest.fixture
def diagnoser(blight, call_log):
    return FakeDiagnoser(diseases=[blight], calls=call_log)


@pytest.fixture
def failing_diagnoser(call_log):
    return FakeDiagnoser(error=DiagnosisError("Plant.id returned HTTP 401"), calls=call_log)


@pytest.fixture
def generator(call_log):
    return FakeGenerator(calls=call_log)


@pytest.fixture
def unreachable_generator(call_log):
    return FakeGenerator(error=TreatmentGenerationError("Failed to connect"), calls=call_log)
