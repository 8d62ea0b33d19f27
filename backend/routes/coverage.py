import logging
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from coverage_engine import CoverageAnalyzer, IssueAnalyzer, load_settings
from coverage_engine.errors import ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/coverage")


class AnalyzeRequest(BaseModel):
    lat: float = Field(description="Latitude of the query point")
    lng: float = Field(description="Longitude of the query point")
    address: Optional[str] = Field(default=None, description="Human readable address, echoed back")
    provider: Optional[str] = Field(default=None, description="Explicit provider, or 'auto'")


class ProviderRequest(BaseModel):
    provider: str
    service_type: str = Field(description="mobile or broadband")
    lat: float
    lng: float


class IssueRequest(BaseModel):
    lat: float
    lng: float
    issue_description: str
    address: Optional[str] = None
    user_agent: Optional[str] = None


@lru_cache(maxsize=1)
def get_analyzer() -> CoverageAnalyzer:
    return CoverageAnalyzer.from_settings(load_settings())


@lru_cache(maxsize=1)
def get_issue_analyzer() -> IssueAnalyzer:
    analyzer = get_analyzer()
    return IssueAnalyzer.from_settings(load_settings(), analyzer.report_source)


def failure(message: str) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": "Analysis failed", "message": message})


def invalid(e: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Invalid request", "message": str(e)})


@router.post("/analyze")
async def analyze_coverage(request: AnalyzeRequest, analyzer: CoverageAnalyzer = Depends(get_analyzer)):
    logger.info("Coverage analysis requested for %s, %s (provider=%s)", request.lat, request.lng, request.provider or "auto")
    try:
        analysis = await analyzer.analyze(request.lat, request.lng, request.address, request.provider)
    except ValidationError as e:
        return invalid(e)
    except Exception:
        logger.exception("Coverage analysis failed at %s, %s (provider=%s)", request.lat, request.lng, request.provider)
        return failure("Unable to analyze coverage for the specified location")

    return {"success": True, "data": analysis}


@router.post("/provider")
async def analyze_provider(request: ProviderRequest, analyzer: CoverageAnalyzer = Depends(get_analyzer)):
    logger.info("Provider coverage analysis for %s (%s) at %s, %s",
                request.provider, request.service_type, request.lat, request.lng)
    try:
        analysis = await analyzer.analyze_provider(request.provider, request.service_type, request.lat, request.lng)
    except ValidationError as e:
        return invalid(e)
    except Exception:
        logger.exception("Provider coverage analysis failed for %s at %s, %s", request.provider, request.lat, request.lng)
        return failure("Unable to analyze provider coverage for the specified location")

    return {"success": True, "data": analysis}


@router.post("/analyze-issue")
async def analyze_issue(request: IssueRequest, issue_analyzer: IssueAnalyzer = Depends(get_issue_analyzer)):
    logger.info("Issue analysis requested for %s, %s", request.lat, request.lng)
    try:
        analysis = await issue_analyzer.analyze(
            request.lat, request.lng, request.issue_description,
            address=request.address, user_agent=request.user_agent,
        )
    except ValidationError as e:
        return invalid(e)
    except Exception:
        logger.exception("Issue analysis failed at %s, %s", request.lat, request.lng)
        return failure("Unable to analyze the reported issue")

    return {"success": True, "data": analysis}
