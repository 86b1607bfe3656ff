class CropHealthError(Exception):
    """Base class for all errors raised by the assessment service."""


class ConfigurationError(CropHealthError):
    """A required API key or setting is missing."""


class InvalidImageError(CropHealthError):
    """The uploaded file is not an acceptable still image."""

    def __init__(self, message: str, status_code: int = 422):
        super().__init__(message)
        self.status_code = status_code


class DiagnosisError(CropHealthError):
    """The diagnostic service could not assess the image."""


class TreatmentGenerationError(CropHealthError):
    """The generation service failed or returned unreadable output."""


class TreatmentPlanFormatError(TreatmentGenerationError):
    """The generated plan is missing one of the four required lists."""
