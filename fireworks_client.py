import httpx
import logging
from typing import Any, Dict, List, Optional

import config
from exceptions import ConfigurationError, TreatmentGenerationError
from models import Disease
from treatment import parse_plan_text

logger = logging.getLogger(__name__)


class FireworksClient:
    """Handles communication with Fireworks AI API"""

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        client: Optional[httpx.Client] = None,
    ):
        """
        Initializes the Fireworks AI client.
        """
        self.model_name = model_name or config.FIREWORKS_MODEL
        self.api_url = config.FIREWORKS_API_URL
        self.api_key = api_key or config.FIREWORKS_API_KEY

        if not self.api_key:
            raise ConfigurationError("FIREWORKS_API_KEY environment variable is required")

        self.client = client or httpx.Client(timeout=config.HTTP_TIMEOUT)

    def generate_treatment_plan(self, diseases: List[Disease], prompt: str) -> Dict[str, Any]:
        """
        Main method: takes the detected diseases and prompt, returns the plan dict
        """
        try:
            payload = self._build_payload(prompt)
            raw_ai_text = self._call_fireworks_api(payload)
            return parse_plan_text(raw_ai_text)

        except httpx.HTTPStatusError as e:
            raise TreatmentGenerationError(f"HTTP error connecting to Fireworks: {e.response.text}")
        except httpx.RequestError as e:
            raise TreatmentGenerationError(
                f"Failed to connect to Fireworks. Check your internet connection. Error: {e}"
            )
        except ValueError as e:
            raise TreatmentGenerationError(f"An error occurred during generation: {e}")

    def _build_payload(self, prompt: str) -> Dict[str, Any]:
        """Create the structured payload for Fireworks API"""
        return {
            "model": self.model_name,
            "max_tokens": 1500,
            "top_p": 1,
            "top_k": 40,
            "presence_penalty": 0,
            "frequency_penalty": 0,
            "temperature": 0.4,
            "response_format": {"type": "json_object"},
            "messages": [
                {
                    "role": "user",
                    "content": prompt
                }
            ]
        }

    def _call_fireworks_api(self, payload: Dict[str, Any]) -> str:
        """Send request to Fireworks API and get the raw text response"""
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}"
        }

        response = self.client.post(self.api_url, json=payload, headers=headers)
        response.raise_for_status()

        raw_data = response.json()
        choices = raw_data.get("choices", [])
        if not choices:
            raise ValueError("Fireworks returned no choices")

        ai_text_response = (choices[0].get("message") or {}).get("content") or ""

        if not ai_text_response:
            raise ValueError("Fireworks returned an empty response.")

        return ai_text_response
