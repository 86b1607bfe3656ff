import httpx
import logging
from typing import Any, Dict, List, Optional

import config
from exceptions import ConfigurationError, DiagnosisError
from models import Disease

logger = logging.getLogger(__name__)

ORGANS = ["leaf", "flower"]
DETAILS = ["disease", "description", "treatment"]


class PlantIdClient:
    """Handles communication with the Plant.id health assessment API"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        client: Optional[httpx.Client] = None,
    ):
        """
        Initializes the Plant.id client.
        """
        self.api_key = api_key or config.PLANT_ID_API_KEY
        self.api_url = api_url or config.PLANT_ID_API_URL

        if not self.api_key:
            raise ConfigurationError("PLANT_ID_API_KEY environment variable is required")

        self.client = client or httpx.Client(timeout=config.HTTP_TIMEOUT)

    def assess_health(self, image_url: str) -> List[Disease]:
        """
        Main method: takes a data URL of the image, returns the candidate
        diseases in the order the service ranked them.
        """
        try:
            payload = self._build_payload(image_url)
            raw_data = self._call_plant_id_api(payload)
            return self._parse_response(raw_data)

        except httpx.HTTPStatusError as e:
            raise DiagnosisError(
                f"Plant.id returned HTTP {e.response.status_code}: {e.response.text}"
            )
        except httpx.RequestError as e:
            raise DiagnosisError(f"Failed to connect to Plant.id. Check your internet connection. Error: {e}")
        except (ValueError, KeyError, TypeError) as e:
            raise DiagnosisError(f"Unexpected response from Plant.id: {e}")

    def _build_payload(self, image_url: str) -> Dict[str, Any]:
        """Create the structured payload for the health assessment call"""
        return {
            "images": [image_url],
            "organs": ORGANS,
            "health_assessment": True,
            "details": DETAILS,
        }

    def _call_plant_id_api(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {
            "Content-Type": "application/json",
            "Api-Key": self.api_key,
        }

        logger.info("Sending image to Plant.id health assessment")
        response = self.client.post(self.api_url, json=payload, headers=headers)
        response.raise_for_status()
        return response.json()

    def _parse_response(self, raw_data: Dict[str, Any]) -> List[Disease]:
        assessment = raw_data.get("health_assessment")
        if not isinstance(assessment, dict):
            raise ValueError("response has no health_assessment section")

        diseases = []
        for entry in assessment.get("diseases") or []:
            if not isinstance(entry, dict):
                raise ValueError(f"disease entry is not an object: {entry!r}")
            details = entry.get("disease_details") or {}
            diseases.append(
                Disease(
                    name=entry["name"],
                    probability=float(entry["probability"]),
                    description=entry.get("description") or details.get("description"),
                    treatment=_flatten_treatment(entry.get("treatment") or details.get("treatment")),
                )
            )

        logger.info(f"Plant.id reported {len(diseases)} candidate disease(s)")
        return diseases


def _flatten_treatment(treatment: Any) -> Optional[str]:
    # Plant.id returns {"biological": [...], "chemical": [...], "prevention": [...]}
    if not treatment:
        return None
    if isinstance(treatment, str):
        return treatment
    if isinstance(treatment, dict):
        lines = []
        for kind, steps in treatment.items():
            if isinstance(steps, list):
                steps = " ".join(str(s) for s in steps)
            lines.append(f"{kind.capitalize()}: {steps}")
        return "\n".join(lines)
    return str(treatment)
