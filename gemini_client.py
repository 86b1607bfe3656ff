import logging
from typing import Any, Dict, List, Optional

from google import genai
from google.genai import types

import config
from exceptions import ConfigurationError, TreatmentGenerationError
from models import Disease
from treatment import parse_plan_text

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You are an experienced plant pathologist advising farmers. "
    "Answer only with a JSON object, with no other text."
)


class GeminiClient:
    """
    Handles communication with Google's Gemini models for treatment plans.
    """

    def __init__(self, model_name: Optional[str] = None, api_key: Optional[str] = None, client=None):
        self.model_name = model_name or config.GEMINI_MODEL
        api_key = api_key or config.GOOGLE_API_KEY

        if client is None:
            if not api_key:
                raise ConfigurationError("Google API Key is missing. Please set GOOGLE_API_KEY in your .env file")
            client = genai.Client(api_key=api_key)

        self.client = client
        logger.info(f"Gemini client initialized with model: {self.model_name}")

    def generate_treatment_plan(self, diseases: List[Disease], prompt: str) -> Dict[str, Any]:
        """
        Main method: takes the detected diseases and the prompt built from
        them, returns the raw plan dict produced by the model.
        """
        try:
            logger.info(f"Sending treatment request to Gemini for {len(diseases)} disease(s)")
            response = self.client.models.generate_content(
                model=self.model_name,
                contents=prompt,
                config=types.GenerateContentConfig(
                    system_instruction=SYSTEM_INSTRUCTION,
                    response_mime_type="application/json",
                    temperature=0.4,
                ),
            )
            ai_text_response = (response.text or "").strip()
        except Exception as e:
            raise TreatmentGenerationError(self._describe_error(e))

        if not ai_text_response:
            raise TreatmentGenerationError("Gemini returned an empty response.")

        return parse_plan_text(ai_text_response)

    def _describe_error(self, e: Exception) -> str:
        error_str = str(e).lower()
        if "503" in error_str or "unavailable" in error_str or "overloaded" in error_str:
            return "Gemini API is currently overloaded. Please try again in a few minutes."
        elif "429" in error_str or "quota" in error_str:
            return "API quota exceeded. Please check your Google AI usage limits."
        elif "403" in error_str or "forbidden" in error_str:
            return "API access forbidden. Please check your Google API key permissions."
        elif "401" in error_str or "unauthorized" in error_str:
            return "API authentication failed. Please check your GOOGLE_API_KEY in the .env file."
        return f"An error occurred during Gemini generation: {e}"
