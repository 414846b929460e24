"""POST /api/generate-comment and /api/generate-alternatives - metered AI generation"""

import time
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from xiaoe_gateway.api.v1.schemas import GenerateAlternativesRequest, GenerateCommentRequest, StudentCommentSchema
from xiaoe_gateway.api.dependencies import get_generation_gateway, get_request_id, get_template_writer
from xiaoe_gateway.config import settings
from xiaoe_gateway.domain.exceptions import (
    GenerationError,
    InsufficientCreditsError,
    UnauthorizedError,
    UnsupportedModelError,
)
from xiaoe_gateway.domain.templates import TemplateCommentWriter
from xiaoe_gateway.domain.workflow import MeteredGenerationWorkflow
from xiaoe_gateway.infrastructure.clients.llm import GenerationGateway
from xiaoe_gateway.infrastructure.database.session import get_db
from xiaoe_gateway.infrastructure.database.repositories import UserRepository
from xiaoe_gateway.infrastructure.observability.metrics import record_generation
from xiaoe_gateway.infrastructure.observability.logging import log_generation

router = APIRouter()


def _failure(e: Exception, kind: str, model: str, request_id: str) -> HTTPException:
    """Map a workflow failure to an HTTP error, recording the outcome"""
    if isinstance(e, UnauthorizedError):
        record_generation(kind, model, "unauthorized")
        return HTTPException(status_code=401, detail="User is not logged in")

    if isinstance(e, InsufficientCreditsError):
        record_generation(kind, model, "insufficient_credits")
        return HTTPException(
            status_code=403,
            detail=f"Insufficient credits: {e.required} required, {e.available} remaining",
        )

    if isinstance(e, UnsupportedModelError):
        record_generation(kind, model, "unsupported_model")
        return HTTPException(status_code=400, detail=str(e))

    if isinstance(e, GenerationError):
        record_generation(kind, model, "failed")
        logging.error(f"Generation failed: {e}", extra={"request_id": request_id, "model": model})
        return HTTPException(status_code=500, detail=f"{kind.capitalize()} generation failed: {e}")

    record_generation(kind, model, "error")
    logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
    return HTTPException(status_code=500, detail="Internal server error")


@router.post("/generate-comment", response_model=List[StudentCommentSchema])
async def generate_comment(
    request_body: GenerateCommentRequest,
    request: Request,
    db: Session = Depends(get_db),
    gateway: GenerationGateway = Depends(get_generation_gateway),
    templates: Optional[TemplateCommentWriter] = Depends(get_template_writer),
):
    """
    Generate one comment per student profile.

    Flow:
    1. Resolve requester (401 if unknown)
    2. Check balance covers one credit per profile (403 otherwise, no vendor call)
    3. Call the selected vendor once for the whole batch
    4. Debit the credits only after a successful generation
    """
    start_time = time.time()
    request_id = get_request_id(request)
    workflow = MeteredGenerationWorkflow(UserRepository(db), gateway, templates, settings.max_alternatives)
    profiles = [p.to_domain() for p in request_body.student_profiles]

    try:
        comments = await workflow.generate(
            request_body.username,
            profiles,
            request_body.comment_style,
            request_body.model,
        )
        db.commit()
    except Exception as e:
        db.rollback()
        raise _failure(e, "comment", request_body.model, request_id)

    duration_ms = (time.time() - start_time) * 1000
    record_generation("comment", request_body.model, "success", credits_used=len(profiles))
    log_generation(request_id, request_body.username, "comment", request_body.model, len(comments), "success", duration_ms)

    return [StudentCommentSchema.from_domain(c) for c in comments]


@router.post("/generate-alternatives", response_model=List[str])
async def generate_alternatives(
    request_body: GenerateAlternativesRequest,
    request: Request,
    db: Session = Depends(get_db),
    gateway: GenerationGateway = Depends(get_generation_gateway),
    templates: Optional[TemplateCommentWriter] = Depends(get_template_writer),
):
    """Rephrase a single comment sentence; costs one credit"""
    start_time = time.time()
    request_id = get_request_id(request)
    workflow = MeteredGenerationWorkflow(UserRepository(db), gateway, templates, settings.max_alternatives)

    try:
        alternatives = await workflow.generate_alternatives(
            request_body.username,
            request_body.original_text,
            request_body.source_tag,
            request_body.comment_style,
            request_body.model,
        )
        db.commit()
    except Exception as e:
        db.rollback()
        raise _failure(e, "alternatives", request_body.model, request_id)

    duration_ms = (time.time() - start_time) * 1000
    record_generation("alternatives", request_body.model, "success", credits_used=1)
    log_generation(request_id, request_body.username, "alternatives", request_body.model, len(alternatives), "success", duration_ms)

    return alternatives
