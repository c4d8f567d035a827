# projects.py
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from decorai.ai import AnalysisError, RoomAnalysis, RoomAnalyzer
from decorai.auth import get_current_user
from decorai.db import get_db
from decorai.models import (
    DecorationItem, DesignSuggestion, Profile, Project,
    STATUS_ANALYZING, STATUS_COMPLETED,
)
from decorai.settings import settings
from decorai.storage import BlobStorage, ImageRejected, StorageError, build_object_key, validate_image

# --- Module-level Configuration ---
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/projects", tags=["Projects"])

UPLOAD_FAILED = "Image upload failed"
CREATION_FAILED = "Project creation failed"
ANALYSIS_FAILED = "Image analysis failed"


# ===================================================================
# Pydantic Schemas for API Contracts
# ===================================================================

class DecorationItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    suggestion_id: uuid.UUID
    name: str
    description: Optional[str] = None
    category: str
    estimated_price: Optional[float] = None
    store_name: Optional[str] = None
    store_location: Optional[str] = None
    store_distance: Optional[float] = None
    image_url: Optional[str] = None
    created_at: datetime


class SuggestionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    project_id: uuid.UUID
    suggestion_text: str
    items: List[Dict[str, Any]] = []
    total_estimated_cost: Optional[float] = None
    created_at: datetime
    decoration_items: List[DecorationItemResponse] = []


class ProjectResponse(BaseModel):
    """Standard response model for a project row."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    title: str
    description: Optional[str] = None
    original_image_url: str
    analyzed_data: Optional[Dict[str, Any]] = None
    status: str
    created_at: datetime
    updated_at: datetime


class ProjectDetailResponse(ProjectResponse):
    """A project with its suggestion(s) and decoration items."""
    suggestions: List[SuggestionResponse] = []


class VariationRequest(BaseModel):
    """Request body for a themed variation of a completed analysis."""
    variation: str = Field(..., min_length=1, max_length=500, examples=["Scandinavian with warm wood tones"])


# ===================================================================
# Dependencies
# ===================================================================

def get_analyzer(request: Request) -> RoomAnalyzer:
    """The process-wide analysis client built at startup."""
    return request.app.state.analyzer


def get_storage(request: Request) -> BlobStorage:
    """The process-wide object storage client built at startup."""
    return request.app.state.storage


# ===================================================================
# Workflow
# ===================================================================

async def _load_project(db: AsyncSession, project_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Project]:
    query = (
        select(Project)
        .where(Project.id == project_id, Project.user_id == user_id)
        .options(selectinload(Project.suggestions).selectinload(DesignSuggestion.decoration_items))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(query)
    return result.scalars().first()


async def finalize_project(db: AsyncSession, project: Project, analysis: RoomAnalysis) -> DesignSuggestion:
    """
    Writes the analysis result: project update, one suggestion, one item row
    per suggested item. Commits once at the end.
    """
    project.analyzed_data = analysis.to_json()
    project.advance_status(STATUS_COMPLETED)
    await db.flush()
    logger.info(f"Project {project.id} marked completed")

    suggestion = DesignSuggestion(
        project_id=project.id,
        suggestion_text=analysis.suggestions,
        items=analysis.raw_items(),
        total_estimated_cost=analysis.total_estimated_cost(),
    )
    db.add(suggestion)
    await db.flush()

    if analysis.items:
        db.add_all([
            DecorationItem(
                suggestion_id=suggestion.id,
                name=item.name,
                description=item.description,
                category=item.category,
                estimated_price=item.price_value(),
            )
            for item in analysis.items
        ])
        await db.flush()
    logger.info(f"Project {project.id}: suggestion {suggestion.id} with {len(analysis.items)} item(s)")

    await db.commit()
    return suggestion


async def create_and_analyze_project(
    db: AsyncSession,
    storage: BlobStorage,
    analyzer: RoomAnalyzer,
    user: Profile,
    title: str,
    description: Optional[str],
    filename: Optional[str],
    content_type: Optional[str],
    contents: bytes,
) -> Project:
    """
    Upload -> insert (analyzing) -> analyze -> finalize, strictly in sequence.

    A failed upload creates no project. Any later failure leaves the project
    in `analyzing` and the uploaded object in place.
    """
    # 1-2. Upload and resolve the public URL
    key = build_object_key(user.id, filename, content_type)
    try:
        image_url = await storage.upload(key, contents)
    except StorageError:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=UPLOAD_FAILED)

    # 3. Project row in `analyzing`
    project = Project(
        user_id=user.id,
        title=title,
        description=description,
        original_image_url=image_url,
    )
    project.advance_status(STATUS_ANALYZING)
    try:
        db.add(project)
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception(f"Database error while creating a project for user {user.id}")
        logger.warning(f"Uploaded object left without a project: {image_url}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=CREATION_FAILED)
    logger.info(f"Project {project.id} created for user {user.id}, analyzing {image_url}")

    # 4-5. One analysis call, reply validated at the boundary
    try:
        analysis = await analyzer.analyze_room(image_url, description or settings.DEFAULT_ANALYSIS_REQUEST)
    except AnalysisError as e:
        logger.error(f"Analysis failed for project {project.id}: {e}")
        logger.warning(f"Project {project.id} remains in '{STATUS_ANALYZING}'")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=ANALYSIS_FAILED)

    # 6-8. Finalization
    try:
        await finalize_project(db, project, analysis)
    except Exception:
        await db.rollback()
        logger.exception(f"Database error while finalizing project {project.id}")
        logger.warning(f"Project {project.id} remains in '{STATUS_ANALYZING}'")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=CREATION_FAILED)

    return await _load_project(db, project.id, user.id)


# ===================================================================
# API Endpoints
# ===================================================================

@router.post("", response_model=ProjectDetailResponse, status_code=status.HTTP_201_CREATED, summary="Upload a room photo and analyze it")
async def create_project(
    title: str = Form(...),
    description: Optional[str] = Form(None),
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(get_current_user),
    storage: BlobStorage = Depends(get_storage),
    analyzer: RoomAnalyzer = Depends(get_analyzer),
):
    """
    Creates a design project from a room photo.

    The photo must be an image of at most 10MB. It is uploaded to object
    storage, a project is recorded in `analyzing` status, the AI analyzes the
    photo against the optional `description`, and on success the project is
    completed with one suggestion and its decoration items.
    """
    title = title.strip()
    if not title:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Project title is required")
    description = (description or "").strip() or None

    try:
        validate_image(file.content_type, file.size or 0, settings.MAX_UPLOAD_BYTES)
        contents = await file.read()
        validate_image(file.content_type, len(contents), settings.MAX_UPLOAD_BYTES)
    except ImageRejected as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    finally:
        await file.close()

    return await create_and_analyze_project(
        db, storage, analyzer, current_user,
        title=title,
        description=description,
        filename=file.filename,
        content_type=file.content_type,
        contents=contents,
    )


@router.get("", response_model=List[ProjectResponse], summary="List user's projects")
async def list_projects(
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(get_current_user),
):
    """All projects owned by the current user, newest first."""
    query = (
        select(Project)
        .where(Project.user_id == current_user.id)
        .order_by(Project.created_at.desc())
    )
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{project_id}", response_model=ProjectDetailResponse, summary="Get one project")
async def get_project(
    project_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(get_current_user),
):
    project = await _load_project(db, project_id, current_user.id)
    if project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return project


@router.post("/{project_id}/variations", response_model=RoomAnalysis, summary="Generate a design variation")
async def create_variation(
    project_id: uuid.UUID,
    req: VariationRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(get_current_user),
    analyzer: RoomAnalyzer = Depends(get_analyzer),
):
    """
    Asks the AI for a themed variation of a completed project's analysis.
    The variation is returned only; nothing is stored.
    """
    project = await _load_project(db, project_id, current_user.id)
    if project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    if project.status != STATUS_COMPLETED or not project.analyzed_data:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="The project has no completed analysis yet")

    try:
        return await analyzer.generate_variation(project.analyzed_data, req.variation)
    except AnalysisError as e:
        logger.error(f"Variation failed for project {project.id}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=ANALYSIS_FAILED)
