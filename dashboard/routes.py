# dashboard/routes.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from courses.schemas import CourseSummary
from dashboard.schemas import (
    ContinueWatchingResponse,
    FavoriteStatus,
    LessonPlanCreate,
    LessonPlanResponse,
    LessonPlanUpdate,
)
from dashboard.services import DashboardService
from auth.routes import get_current_user
from auth.models import User
from database import get_db

router = APIRouter(tags=["dashboard"])


@router.post("/courses/{course_id}/favorite", response_model=FavoriteStatus)
def toggle_favorite(course_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Add the course to favorites, or remove it when already there."""
    return FavoriteStatus(is_favorite=DashboardService.toggle_favorite(course_id, current_user, db))


@router.get("/courses/{course_id}/favorite", response_model=FavoriteStatus)
def get_favorite(course_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return FavoriteStatus(is_favorite=DashboardService.is_favorite(course_id, current_user, db))


@router.get("/dashboard/favorites", response_model=List[CourseSummary])
def list_favorites(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Favorite published courses, most recently added first."""
    return DashboardService.favorite_courses(current_user, db)


@router.get("/dashboard/continue-watching", response_model=ContinueWatchingResponse)
def continue_watching(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ContinueWatchingResponse(lesson=DashboardService.last_watched(current_user, db))


@router.get("/lesson-plans", response_model=List[LessonPlanResponse])
def list_plans(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return DashboardService.list_plans(current_user, db)


@router.post("/lesson-plans", response_model=LessonPlanResponse)
def create_plan(body: LessonPlanCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return DashboardService.create_plan(body, current_user, db)


@router.put("/lesson-plans/{plan_id}", response_model=LessonPlanResponse)
def update_plan(
    plan_id: str,
    body: LessonPlanUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return DashboardService.update_plan(plan_id, body, current_user, db)


@router.delete("/lesson-plans/{plan_id}")
def delete_plan(plan_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)) -> dict:
    DashboardService.delete_plan(plan_id, current_user, db)
    return {"success": True}
