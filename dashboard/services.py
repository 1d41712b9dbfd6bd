# dashboard/services.py
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional
from auth.models import User
from courses.entitlements import EntitlementService, Resource, ResourceKind
from courses.models import Course
from dashboard.models import Favorite, LessonPlan
from dashboard.schemas import ContinueWatching, LessonPlanCreate, LessonPlanUpdate
from progress.models import UserProgress
from errors import NotFound, ValidationError

logger = logging.getLogger(__name__)

# How many recent progress rows are scanned for one the user can still open
RECENT_PROGRESS_WINDOW = 20


class DashboardService:
    @staticmethod
    def _visible_course(course_id: str, user: User, db: Session) -> Course:
        course = db.query(Course).filter(Course.id == course_id).first()
        if not course or (not course.is_published and not EntitlementService.is_admin(user)):
            raise NotFound("Course not found")
        return course

    @staticmethod
    def toggle_favorite(course_id: str, user: User, db: Session) -> bool:
        """Flip the favorite flag for a course and return the new state."""
        DashboardService._visible_course(course_id, user, db)
        favorite = db.query(Favorite).filter(
            Favorite.user_id == user.id, Favorite.course_id == course_id
        ).first()
        if favorite:
            db.delete(favorite)
            db.commit()
            return False

        db.add(Favorite(user_id=user.id, course_id=course_id))
        try:
            db.commit()
        except IntegrityError:
            # A concurrent toggle already inserted the row
            db.rollback()
        return True

    @staticmethod
    def is_favorite(course_id: str, user: User, db: Session) -> bool:
        return db.query(Favorite).filter(
            Favorite.user_id == user.id, Favorite.course_id == course_id
        ).first() is not None

    @staticmethod
    def favorite_courses(user: User, db: Session) -> List[Course]:
        return (
            db.query(Course)
            .join(Favorite, Favorite.course_id == Course.id)
            .filter(Favorite.user_id == user.id, Course.is_published.is_(True))
            .order_by(Favorite.created_at.desc())
            .all()
        )

    @staticmethod
    def last_watched(user: User, db: Session) -> Optional[ContinueWatching]:
        """Most recently watched lesson the user can still open, if any."""
        entitlements = EntitlementService(db)
        recent = (
            db.query(UserProgress)
            .filter(UserProgress.user_id == user.id)
            .order_by(UserProgress.last_watched_at.desc())
            .limit(RECENT_PROGRESS_WINDOW)
            .all()
        )
        for progress in recent:
            lesson = progress.lesson
            if not entitlements.has_access(user, Resource(ResourceKind.LESSON, lesson.id)):
                continue
            course = lesson.module.course
            return ContinueWatching(
                lesson_id=lesson.id,
                lesson_title=lesson.title,
                duration=lesson.duration,
                module_title=lesson.module.title,
                course_id=course.id,
                course_title=course.title,
                time_watched=progress.time_watched,
                is_completed=progress.is_completed,
                last_watched_at=progress.last_watched_at,
            )
        return None

    @staticmethod
    def list_plans(user: User, db: Session) -> List[LessonPlan]:
        # Dated plans first, soonest due on top
        return (
            db.query(LessonPlan)
            .filter(LessonPlan.user_id == user.id)
            .order_by(LessonPlan.due_date.is_(None), LessonPlan.due_date.asc(), LessonPlan.created_at.desc())
            .all()
        )

    @staticmethod
    def _get_plan(plan_id: str, user: User, db: Session) -> LessonPlan:
        plan = db.query(LessonPlan).filter(LessonPlan.id == plan_id, LessonPlan.user_id == user.id).first()
        if not plan:
            raise NotFound("Lesson plan not found")
        return plan

    @staticmethod
    def _clean_title(title: Optional[str]) -> str:
        title = (title or "").strip()
        if not title:
            raise ValidationError("Title is required")
        return title

    @staticmethod
    def create_plan(data: LessonPlanCreate, user: User, db: Session) -> LessonPlan:
        title = DashboardService._clean_title(data.title)
        if data.course_id:
            DashboardService._visible_course(data.course_id, user, db)
        plan = LessonPlan(
            user_id=user.id,
            title=title,
            course_id=data.course_id,
            items=[item.model_dump() for item in data.items],
            due_date=data.due_date,
        )
        db.add(plan)
        db.commit()
        db.refresh(plan)
        logger.info(f"User {user.id} created lesson plan {plan.id}")
        return plan

    @staticmethod
    def update_plan(plan_id: str, data: LessonPlanUpdate, user: User, db: Session) -> LessonPlan:
        plan = DashboardService._get_plan(plan_id, user, db)
        changes = data.model_dump(exclude_unset=True)
        if "title" in changes:
            changes["title"] = DashboardService._clean_title(changes["title"])
        if changes.get("course_id"):
            DashboardService._visible_course(changes["course_id"], user, db)
        if "items" in changes:
            changes["items"] = changes["items"] or []
        for field, value in changes.items():
            setattr(plan, field, value)
        db.commit()
        db.refresh(plan)
        return plan

    @staticmethod
    def delete_plan(plan_id: str, user: User, db: Session) -> None:
        plan = DashboardService._get_plan(plan_id, user, db)
        db.delete(plan)
        db.commit()
        logger.info(f"User {user.id} deleted lesson plan {plan_id}")
