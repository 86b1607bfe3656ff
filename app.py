from fastapi import Depends, FastAPI, File, HTTPException, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
import logging
from typing import List

import config
from assessment import Diagnoser, run_assessment
from exceptions import DiagnosisError, InvalidImageError, TreatmentGenerationError
from fireworks_client import FireworksClient
from gemini_client import GeminiClient
from images import encode_image, to_data_url, validate_upload
from models import (
    AssessmentResponse,
    Disease,
    ErrorResponse,
    SessionSnapshot,
    TabSelection,
    TreatmentPlan,
    TreatmentRequest,
)
from plant_id_client import PlantIdClient
from session import SessionStore
from treatment import TreatmentGenerator, validate_treatment_plan
from views import render_result

# --- Configuration ---
logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

# --- App Initialization ---
app = FastAPI(
    title="Crop Health Assessment API",
    description="Plant disease diagnosis with AI-generated treatment plans",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allows all origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

UPLOAD_ERRORS = {
    400: {"model": ErrorResponse, "description": "Bad Request: No file provided"},
    413: {"model": ErrorResponse, "description": "Payload Too Large: File exceeds size limit"},
    422: {"model": ErrorResponse, "description": "Unprocessable Entity: Invalid file type"},
    503: {"model": ErrorResponse, "description": "Service Unavailable: AI client not ready"},
}


def get_treatment_client():
    """Factory function to get the configured treatment generation client."""
    if config.TREATMENT_BACKEND == "GEMINI":
        return GeminiClient()
    elif config.TREATMENT_BACKEND == "FIREWORKS":
        return FireworksClient()
    else:
        raise ValueError(
            f"Invalid TREATMENT_BACKEND: {config.TREATMENT_BACKEND}. Use GEMINI or FIREWORKS."
        )


# Initialize single, reusable instances of the AI clients
try:
    plant_id_client = PlantIdClient()
    logger.info("Plant.id client initialized successfully.")
except Exception as e:
    logger.error(f"Failed to initialize Plant.id client: {e}")
    plant_id_client = None

try:
    treatment_client = get_treatment_client()
    logger.info(f"Treatment client initialized successfully (Backend: {config.TREATMENT_BACKEND}).")
except Exception as e:
    logger.error(f"Failed to initialize treatment client: {e}")
    treatment_client = None

sessions = SessionStore()


# --- Dependencies ---

def get_diagnoser() -> Diagnoser:
    if not plant_id_client:
        logger.error("Diagnosis requested, but the Plant.id client failed to initialize.")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Diagnostic service is not configured. Please contact the administrator."
        )
    return plant_id_client


def get_generator() -> TreatmentGenerator:
    if not treatment_client:
        logger.error("Treatment requested, but the treatment client failed to initialize.")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Treatment generation service is not configured. Please contact the administrator."
        )
    return treatment_client


def get_session_store() -> SessionStore:
    return sessions


async def read_upload(file: UploadFile) -> bytes:
    image_bytes = await file.read()
    try:
        validate_upload(image_bytes, file.content_type)
    except InvalidImageError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    logger.info(f"Received file: {file.filename}, Size: {len(image_bytes)} bytes")
    return image_bytes


def find_session(session_id: str, store: SessionStore):
    try:
        return store.get(session_id)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown session: {session_id}")


# --- API Endpoints ---

@app.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": "crop-health-assessment",
        "diagnostic_client": plant_id_client is not None,
        "treatment_client": treatment_client is not None,
    }


@app.post(
    "/diagnose",
    response_model=List[Disease],
    responses={**UPLOAD_ERRORS, 502: {"model": ErrorResponse, "description": "Bad Gateway: diagnosis failed"}},
)
async def diagnose(
    file: UploadFile = File(...),
    diagnoser: Diagnoser = Depends(get_diagnoser),
) -> List[Disease]:
    """Runs only the diagnosis step and returns the candidate diseases."""
    image_bytes = await read_upload(file)
    image_url = to_data_url(await run_in_threadpool(encode_image, image_bytes))

    try:
        return await run_in_threadpool(diagnoser.assess_health, image_url)
    except DiagnosisError as e:
        logger.error(f"Diagnosis failed for file {file.filename}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Failed to assess plant health. Error: {e}")


@app.post(
    "/generate-treatment",
    response_model=TreatmentPlan,
    responses={
        502: {"model": ErrorResponse, "description": "Bad Gateway: generation failed or malformed"},
        503: {"model": ErrorResponse, "description": "Service Unavailable: AI client not ready"},
    },
)
async def generate_treatment(
    request: TreatmentRequest,
    generator: TreatmentGenerator = Depends(get_generator),
) -> TreatmentPlan:
    """
    Server side of the treatment step. Errors are reported to the caller;
    substituting the fallback plan is the caller's job.
    """
    try:
        data = await run_in_threadpool(generator.generate_treatment_plan, request.diseases, request.prompt)
        return validate_treatment_plan(data)
    except TreatmentGenerationError as e:
        logger.error(f"Treatment generation failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


@app.post(
    "/assess",
    response_model=AssessmentResponse,
    responses={**UPLOAD_ERRORS, 502: {"model": ErrorResponse, "description": "Bad Gateway: diagnosis failed"}},
)
async def assess(
    file: UploadFile = File(...),
    diagnoser: Diagnoser = Depends(get_diagnoser),
    generator: TreatmentGenerator = Depends(get_generator),
) -> AssessmentResponse:
    """
    Main endpoint: diagnoses the image, then builds a treatment plan.
    A failed treatment step falls back to the fixed plan.
    """
    image_bytes = await read_upload(file)

    try:
        outcome = await run_in_threadpool(run_assessment, image_bytes, diagnoser, generator)
    except DiagnosisError as e:
        logger.error(f"Assessment failed for file {file.filename}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Failed to assess plant health. Error: {e}")

    logger.info(f"Successfully assessed image: {file.filename}")
    return AssessmentResponse(
        result=outcome.result,
        used_fallback=outcome.used_fallback,
        view=render_result(outcome.result),
    )


# --- Session Endpoints ---

@app.post("/sessions", response_model=SessionSnapshot, status_code=status.HTTP_201_CREATED)
async def create_session(store: SessionStore = Depends(get_session_store)) -> SessionSnapshot:
    return store.create().snapshot()


@app.get("/sessions/{session_id}", response_model=SessionSnapshot, responses={404: {"model": ErrorResponse}})
async def get_session(session_id: str, store: SessionStore = Depends(get_session_store)) -> SessionSnapshot:
    return find_session(session_id, store).snapshot()


@app.post("/sessions/{session_id}/image", response_model=SessionSnapshot, responses={**UPLOAD_ERRORS, 404: {"model": ErrorResponse}})
async def select_image(
    session_id: str,
    file: UploadFile = File(...),
    store: SessionStore = Depends(get_session_store),
) -> SessionSnapshot:
    session = find_session(session_id, store)
    image_bytes = await file.read()
    try:
        return session.select_image(image_bytes, file.content_type, file.filename)
    except InvalidImageError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@app.post("/sessions/{session_id}/assess", response_model=SessionSnapshot, responses={404: {"model": ErrorResponse}})
async def assess_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
    diagnoser: Diagnoser = Depends(get_diagnoser),
    generator: TreatmentGenerator = Depends(get_generator),
) -> SessionSnapshot:
    """Failures are reported as notifications on the snapshot, not as HTTP errors."""
    session = find_session(session_id, store)
    return await run_in_threadpool(session.assess, diagnoser, generator)


@app.post("/sessions/{session_id}/tab", response_model=SessionSnapshot, responses={404: {"model": ErrorResponse}})
async def select_tab(
    session_id: str,
    selection: TabSelection,
    store: SessionStore = Depends(get_session_store),
) -> SessionSnapshot:
    return find_session(session_id, store).select_tab(selection.tab)


@app.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT, responses={404: {"model": ErrorResponse}})
async def delete_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    find_session(session_id, store)
    store.delete(session_id)


if __name__ == "__main__":
    uvicorn.run("app:app", host=config.HOST, port=config.PORT, reload=True)
