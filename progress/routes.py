# progress/routes.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
from progress.schemas import CertificateResponse, CourseProgress, ProgressLookup, ProgressResult, ProgressUpdate
from progress.services import ProgressService, to_snapshot
from auth.routes import get_current_user
from auth.models import User
from database import get_db

router = APIRouter(tags=["progress"])


@router.post("/progress", response_model=ProgressResult)
def update_progress(body: ProgressUpdate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Record watch time or completion for a lesson."""
    progress = ProgressService.upsert_progress(current_user, body, db)
    return ProgressResult(progress=to_snapshot(progress))


@router.get("/progress", response_model=ProgressLookup)
def get_progress(
    lessonId: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    progress = ProgressService.get_progress(current_user, lessonId, db)
    return ProgressLookup(progress=to_snapshot(progress) if progress else None)


@router.get("/progress/courses/{course_id}", response_model=CourseProgress)
def get_course_progress(course_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ProgressService.course_progress(current_user, course_id, db)


@router.get("/certificates", response_model=List[CertificateResponse])
def list_certificates(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Certificates earned by the caller."""
    return ProgressService.list_certificates(current_user, db)
