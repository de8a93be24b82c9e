"""Biography drafting endpoint"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..auth import require_role
from ..models import User
from ..rate_limiter import create_rate_limiter
from ..services.bio_generator import BioGenerationError, generate_biography

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Bio"])

rate_limit_bio = create_rate_limiter(limit=10, window_seconds=3600, key_prefix="generate_bio")


class GenerateBioRequest(BaseModel):
    credentials: Optional[str] = None
    teacherName: Optional[str] = None


class GenerateBioResponse(BaseModel):
    biography: str


@router.post("/generate-bio", response_model=GenerateBioResponse)
async def generate_bio(
    data: GenerateBioRequest,
    current_user: User = Depends(require_role("TEACHER")),
    _: None = Depends(rate_limit_bio),
):
    """Draft a teacher biography from their credentials"""
    credentials = (data.credentials or "").strip()
    teacher_name = (data.teacherName or "").strip()
    if not credentials:
        raise HTTPException(status_code=400, detail="Credentials are required")
    if not teacher_name:
        raise HTTPException(status_code=400, detail="Teacher name is required")

    try:
        biography = await generate_biography(teacher_name, credentials)
    except BioGenerationError as e:
        raise HTTPException(status_code=502, detail="Failed to generate biography") from e
    return GenerateBioResponse(biography=biography)
