# progress/services.py
import logging
import math

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from datetime import datetime
from typing import List, Optional
from auth.models import User
from courses.entitlements import EntitlementService, Resource, ResourceKind
from courses.models import Course, Lesson, Module
from notifications.services import NotificationService
from progress.models import Certificate, UserProgress
from progress.schemas import CertificateResponse, CourseProgress, ProgressSnapshot, ProgressUpdate
from errors import ValidationError

logger = logging.getLogger(__name__)


def to_snapshot(progress: UserProgress) -> ProgressSnapshot:
    return ProgressSnapshot(
        lesson_id=progress.lesson_id,
        time_watched=progress.time_watched,
        is_completed=progress.is_completed,
        last_watched_at=progress.last_watched_at,
    )


class ProgressService:
    @staticmethod
    def _find(user_id: str, lesson_id: str, db: Session) -> Optional[UserProgress]:
        return db.query(UserProgress).filter(
            UserProgress.user_id == user_id, UserProgress.lesson_id == lesson_id
        ).first()

    @staticmethod
    def get_progress(user: User, lesson_id: Optional[str], db: Session) -> Optional[UserProgress]:
        if not lesson_id:
            raise ValidationError("lessonId is required")
        EntitlementService(db).require_access(user, Resource(ResourceKind.LESSON, lesson_id))
        return ProgressService._find(user.id, lesson_id, db)

    @staticmethod
    def upsert_progress(user: User, data: ProgressUpdate, db: Session) -> UserProgress:
        """Merge ``data`` into the stored row; fields left out keep their values."""
        if not data.lesson_id:
            raise ValidationError("lessonId is required")
        EntitlementService(db).require_access(user, Resource(ResourceKind.LESSON, data.lesson_id))

        progress = ProgressService._find(user.id, data.lesson_id, db)
        if progress is None:
            progress = UserProgress(user_id=user.id, lesson_id=data.lesson_id, time_watched=0, is_completed=False)
            db.add(progress)
            try:
                db.flush()
            except IntegrityError:
                db.rollback()
                progress = ProgressService._find(user.id, data.lesson_id, db)

        if data.time_watched is not None:
            progress.time_watched = math.floor(data.time_watched)
        if data.is_completed is not None:
            progress.is_completed = data.is_completed
        progress.last_watched_at = datetime.utcnow()
        db.commit()
        db.refresh(progress)

        if progress.is_completed:
            course = db.query(Course).join(Module, Module.course_id == Course.id).join(
                Lesson, Lesson.module_id == Module.id
            ).filter(Lesson.id == data.lesson_id).first()
            if course:
                ProgressService.issue_certificate_if_complete(user.id, course, db)
        return progress

    @staticmethod
    def course_progress(user: User, course_id: str, db: Session) -> CourseProgress:
        EntitlementService(db).require_access(user, Resource(ResourceKind.COURSE, course_id))
        total = db.query(Lesson).join(Module, Module.id == Lesson.module_id).filter(Module.course_id == course_id).count()
        completed = db.query(UserProgress).join(Lesson, Lesson.id == UserProgress.lesson_id).join(
            Module, Module.id == Lesson.module_id
        ).filter(
            Module.course_id == course_id,
            UserProgress.user_id == user.id,
            UserProgress.is_completed.is_(True),
        ).count()
        percentage = round(completed * 100 / total) if total else 0
        return CourseProgress(course_id=course_id, completed_lessons=completed, total_lessons=total, percentage=percentage)

    @staticmethod
    def issue_certificate_if_complete(user_id: str, course: Course, db: Session) -> Optional[Certificate]:
        """Issue the course certificate once every lesson is completed. Idempotent."""
        lesson_ids = [
            row.id for row in db.query(Lesson.id).join(Module, Module.id == Lesson.module_id).filter(
                Module.course_id == course.id
            ).all()
        ]
        if not lesson_ids:
            return None
        completed = db.query(UserProgress).filter(
            UserProgress.user_id == user_id,
            UserProgress.lesson_id.in_(lesson_ids),
            UserProgress.is_completed.is_(True),
        ).count()
        if completed < len(lesson_ids):
            return None
        if db.query(Certificate).filter(Certificate.user_id == user_id, Certificate.course_id == course.id).first():
            return None

        certificate = Certificate(user_id=user_id, course_id=course.id, issued_at=datetime.utcnow())
        db.add(certificate)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            return None
        db.refresh(certificate)
        logger.info(f"Issued certificate {certificate.id} to user {user_id} for course {course.id}")
        NotificationService.notify(
            user_id, "certificate", "Certificate issued", f"You completed '{course.title}'. Your certificate is ready.", db
        )
        return certificate

    @staticmethod
    def list_certificates(user: User, db: Session) -> List[CertificateResponse]:
        certificates = db.query(Certificate).filter(Certificate.user_id == user.id).order_by(Certificate.issued_at.desc()).all()
        return [
            CertificateResponse(
                id=c.id,
                course_id=c.course_id,
                course_title=c.course.title if c.course else None,
                certificate_url=c.certificate_url,
                issued_at=c.issued_at,
            )
            for c in certificates
        ]
