from fastapi import FastAPI, HTTPException, Body, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel
from typing import Optional, Dict, Any
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

from schemas.process_data import ProcessDataError, parse_process_data
from services.llm_service import LLMService, LLMServiceError
from services.fallback_builder import build_fallback_process
from services.quality_validator import QualityThresholds, validate_process
from services.passport_service import PassportService
from services.process_gate import ProcessRejectedError, admit_process
from services.interview_questions import InterviewMode, completion_percent, questions_payload
from services.log_buffer import install_log_buffer
from utils.config import get_settings

settings = get_settings()
thresholds = QualityThresholds.from_settings(settings)

# Initialize services
log_buffer = install_log_buffer(settings.log_buffer_size)
llm_service = LLMService()
passport_service = PassportService()

app = FastAPI(
    title="Process Map Builder",
    version="1.0.0",
)

logger.info(f"CORS enabled for origins: {settings.cors_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)


# ============================================================================
# REQUEST MODELS
# ============================================================================

class GenerateRequest(BaseModel):
    answers: Dict[str, Any] = {}
    companyName: str = ""
    industry: Optional[str] = ""

class PassportRequest(BaseModel):
    process: Dict[str, Any]
    customer: Optional[str] = ""
    version: Optional[str] = "1.0"
    lastUpdated: Optional[str] = ""

class ChangeRequest(BaseModel):
    process: Dict[str, Any]
    description: str

class ProgressRequest(BaseModel):
    answers: Dict[str, Any] = {}
    mode: InterviewMode = InterviewMode.FULL


def _parse_or_422(payload: Dict[str, Any]):
    try:
        return parse_process_data(payload)
    except ProcessDataError as e:
        logger.warning(f"Invalid process payload: {e}")
        raise HTTPException(status_code=422, detail=str(e))


@app.get("/health")
async def health_check():
    return {"status": "healthy", "llm": llm_service.available}


# ============================================================================
# PROCESS ENDPOINTS
# ============================================================================

@app.post("/api/process/generate")
async def generate_process(request: GenerateRequest):
    """Generate a process map from interview answers (LLM with fallback)"""
    logger.info(f"Generating process for company '{request.companyName}'")
    data = await llm_service.generate_process(request.answers, request.companyName, request.industry or "")
    return data.to_json()

@app.post("/api/process/fallback")
async def fallback_process(request: GenerateRequest):
    """Build the deterministic template process without the LLM"""
    data = build_fallback_process(request.answers, request.companyName)
    return data.to_json()

@app.post("/api/process/validate")
async def validate(payload: Dict[str, Any] = Body(...)):
    data = _parse_or_422(payload)
    report = validate_process(data, thresholds)
    logger.info(f"Validated '{data.name}': score {report.score}")
    return report.model_dump(mode="json", by_alias=True, exclude_none=True)

@app.post("/api/process/passport")
async def passport(request: PassportRequest):
    data = _parse_or_422(request.process)
    result = passport_service.generate(
        data,
        customer=request.customer or "",
        version=request.version or "1.0",
        last_updated=request.lastUpdated or "",
    )
    return result.model_dump(mode="json", by_alias=True)

@app.post("/api/process/admit")
async def admit(payload: Dict[str, Any] = Body(...)):
    """Accept an externally produced process only if it has no failed error checks"""
    try:
        data, report = admit_process(payload, thresholds)
    except ProcessDataError as e:
        logger.warning(f"Invalid process payload: {e}")
        raise HTTPException(status_code=422, detail=str(e))
    except ProcessRejectedError as e:
        logger.error(f"Process rejected: {e}")
        raise HTTPException(
            status_code=422,
            detail={
                "message": str(e),
                "report": e.report.model_dump(mode="json", by_alias=True, exclude_none=True),
            },
        )
    return {
        "process": data.to_json(),
        "report": report.model_dump(mode="json", by_alias=True, exclude_none=True),
    }

@app.post("/api/process/change")
async def change_process(request: ChangeRequest):
    current = _parse_or_422(request.process)
    if not request.description.strip():
        raise HTTPException(status_code=400, detail="Change description is empty")
    try:
        updated = await llm_service.apply_changes(current, request.description)
        return updated.to_json()
    except LLMServiceError as e:
        logger.error(f"Error applying changes: {e}")
        raise HTTPException(status_code=502, detail=str(e))


# ============================================================================
# INTERVIEW ENDPOINTS
# ============================================================================

@app.get("/api/interview/questions")
async def get_questions(mode: InterviewMode = InterviewMode.FULL, block: Optional[str] = None):
    return questions_payload(mode, block)

@app.post("/api/interview/progress")
async def interview_progress(request: ProgressRequest):
    return {"mode": request.mode.value, "completionPercent": completion_percent(request.answers, request.mode)}


# ============================================================================
# ADMIN LOG ENDPOINTS
# ============================================================================

@app.get("/api/admin/logs")
async def get_logs(limit: int = Query(200, ge=0), level: Optional[str] = None):
    return {"logs": log_buffer.get_logs(limit, level), "total": len(log_buffer)}

@app.get("/api/admin/logs/text", response_class=PlainTextResponse)
async def get_logs_text(limit: int = Query(200, ge=0)):
    return log_buffer.as_text(limit)

@app.delete("/api/admin/logs")
async def clear_logs():
    logger.info(f"Clearing log buffer ({len(log_buffer)} entries)")
    log_buffer.clear()
    return {"status": "cleared"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
