# courses/services.py
import logging

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, aliased
from typing import List, Optional
from auth.models import User
from courses.models import Attachment, Course, Lesson, Module
from courses.schemas import (
    AttachmentCreate,
    AttachmentUpdate,
    CourseCreate,
    CourseUpdate,
    LessonCreate,
    LessonUpdate,
    ModuleCreate,
    ModuleUpdate,
)
from courses.entitlements import EntitlementService
from shop.models import FileProduct, FilePurchase, ProductAttachment, ProductPurchase
from storage.client import StorageClient
from subscription.models import Tier
from errors import NotFound, ValidationError

logger = logging.getLogger(__name__)


def _apply(instance, data) -> None:
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(instance, field, value)


def _require_tier(tier_id: int, db: Session) -> None:
    if not db.query(Tier).filter(Tier.id == tier_id).first():
        raise ValidationError("Minimum tier does not exist")


class CourseService:
    @staticmethod
    def list_courses(user: Optional[User], db: Session) -> List[Course]:
        """Published courses the caller's level unlocks; admins see every course."""
        entitlements = EntitlementService(db)
        query = db.query(Course)
        if not entitlements.is_admin(user):
            query = query.join(Tier, Tier.id == Course.minimum_tier_id).filter(
                Course.is_published.is_(True),
                Tier.permission_level <= entitlements.permission_level(user),
            )
        return query.order_by(Course.created_at.desc()).all()

    @staticmethod
    def get_course(course_id: str, db: Session) -> Optional[Course]:
        return db.query(Course).filter(Course.id == course_id).first()

    @staticmethod
    def create_course(data: CourseCreate, db: Session) -> Course:
        _require_tier(data.minimum_tier_id, db)
        course = Course(**data.model_dump())
        db.add(course)
        db.commit()
        db.refresh(course)
        return course

    @staticmethod
    def update_course(course_id: str, data: CourseUpdate, db: Session) -> Course:
        course = CourseService.get_course(course_id, db)
        if not course:
            raise NotFound("Course not found")
        if data.minimum_tier_id is not None:
            _require_tier(data.minimum_tier_id, db)
        _apply(course, data)
        db.commit()
        db.refresh(course)
        return course

    @staticmethod
    def delete_course(course_id: str, db: Session) -> None:
        course = CourseService.get_course(course_id, db)
        if not course:
            raise NotFound("Course not found")
        AttachmentService.ensure_unsold(
            db.query(Attachment.id).join(Lesson, Lesson.id == Attachment.lesson_id).join(
                Module, Module.id == Lesson.module_id
            ).filter(Module.course_id == course_id),
            db,
        )
        db.delete(course)
        db.commit()

    @staticmethod
    def create_module(course_id: str, data: ModuleCreate, db: Session) -> Module:
        if not CourseService.get_course(course_id, db):
            raise NotFound("Course not found")
        module = Module(course_id=course_id, **data.model_dump())
        db.add(module)
        db.commit()
        db.refresh(module)
        return module

    @staticmethod
    def update_module(module_id: str, data: ModuleUpdate, db: Session) -> Module:
        module = db.query(Module).filter(Module.id == module_id).first()
        if not module:
            raise NotFound("Module not found")
        _apply(module, data)
        db.commit()
        db.refresh(module)
        return module

    @staticmethod
    def delete_module(module_id: str, db: Session) -> None:
        module = db.query(Module).filter(Module.id == module_id).first()
        if not module:
            raise NotFound("Module not found")
        AttachmentService.ensure_unsold(
            db.query(Attachment.id).join(Lesson, Lesson.id == Attachment.lesson_id).filter(Lesson.module_id == module_id),
            db,
        )
        db.delete(module)
        db.commit()

    @staticmethod
    def get_lesson(lesson_id: str, db: Session) -> Optional[Lesson]:
        return db.query(Lesson).filter(Lesson.id == lesson_id).first()

    @staticmethod
    def create_lesson(module_id: str, data: LessonCreate, db: Session) -> Lesson:
        if not db.query(Module).filter(Module.id == module_id).first():
            raise NotFound("Module not found")
        lesson = Lesson(module_id=module_id, **data.model_dump())
        db.add(lesson)
        db.commit()
        db.refresh(lesson)
        return lesson

    @staticmethod
    def update_lesson(lesson_id: str, data: LessonUpdate, db: Session) -> Lesson:
        lesson = CourseService.get_lesson(lesson_id, db)
        if not lesson:
            raise NotFound("Lesson not found")
        _apply(lesson, data)
        db.commit()
        db.refresh(lesson)
        return lesson

    @staticmethod
    def delete_lesson(lesson_id: str, db: Session) -> None:
        lesson = CourseService.get_lesson(lesson_id, db)
        if not lesson:
            raise NotFound("Lesson not found")
        AttachmentService.ensure_unsold(db.query(Attachment.id).filter(Attachment.lesson_id == lesson_id), db)
        db.delete(lesson)
        db.commit()


class AttachmentService:
    @staticmethod
    def get_attachment(attachment_id: str, db: Session) -> Optional[Attachment]:
        return db.query(Attachment).filter(Attachment.id == attachment_id).first()

    @staticmethod
    def ensure_unsold(attachment_ids, db: Session) -> None:
        """Refuse to delete files that a file or bundle purchase still points at."""
        sold_file = db.query(FilePurchase.id).join(
            FileProduct, FileProduct.id == FilePurchase.file_product_id
        ).filter(FileProduct.attachment_id.in_(attachment_ids)).first()
        sold_bundle = db.query(ProductPurchase.id).join(
            ProductAttachment, ProductAttachment.product_id == ProductPurchase.product_id
        ).filter(ProductAttachment.attachment_id.in_(attachment_ids)).first()
        if sold_file or sold_bundle:
            raise ValidationError("Attachment has been purchased and cannot be deleted")

    @staticmethod
    def list_accessible(user: User, db: Session) -> List[Attachment]:
        """The caller's file library.

        Same rules as ``EntitlementService.has_access``: the attachment tier and,
        for lesson files, the published course's tier must both be within the
        caller's level, or the file was bought on its own or in a bundle.
        """
        entitlements = EntitlementService(db)
        query = db.query(Attachment)
        if not entitlements.is_admin(user):
            level = entitlements.permission_level(user)
            attachment_tier = aliased(Tier)
            course_tier = aliased(Tier)
            by_tier = db.query(Attachment.id).join(
                attachment_tier, attachment_tier.id == Attachment.minimum_tier_id
            ).outerjoin(Lesson, Lesson.id == Attachment.lesson_id).outerjoin(
                Module, Module.id == Lesson.module_id
            ).outerjoin(Course, Course.id == Module.course_id).outerjoin(
                course_tier, course_tier.id == Course.minimum_tier_id
            ).filter(
                attachment_tier.permission_level <= level,
                or_(
                    Attachment.lesson_id.is_(None),
                    and_(Course.is_published.is_(True), course_tier.permission_level <= level),
                ),
            )
            bought_files = db.query(FileProduct.attachment_id).join(
                FilePurchase, FilePurchase.file_product_id == FileProduct.id
            ).filter(FilePurchase.user_id == user.id)
            bought_bundles = db.query(ProductAttachment.attachment_id).join(
                ProductPurchase, ProductPurchase.product_id == ProductAttachment.product_id
            ).filter(ProductPurchase.user_id == user.id)
            query = query.filter(or_(
                Attachment.id.in_(by_tier),
                Attachment.id.in_(bought_files),
                Attachment.id.in_(bought_bundles),
            ))
        return query.order_by(Attachment.created_at.desc()).all()

    @staticmethod
    def create_attachment(data: AttachmentCreate, db: Session) -> Attachment:
        _require_tier(data.minimum_tier_id, db)
        if data.lesson_id and not CourseService.get_lesson(data.lesson_id, db):
            raise NotFound("Lesson not found")
        attachment = Attachment(**data.model_dump())
        db.add(attachment)
        db.commit()
        db.refresh(attachment)
        return attachment

    @staticmethod
    def update_attachment(attachment_id: str, data: AttachmentUpdate, db: Session) -> Attachment:
        attachment = AttachmentService.get_attachment(attachment_id, db)
        if not attachment:
            raise NotFound("Attachment not found")
        if data.minimum_tier_id is not None:
            _require_tier(data.minimum_tier_id, db)
        _apply(attachment, data)
        db.commit()
        db.refresh(attachment)
        return attachment

    @staticmethod
    def delete_attachment(attachment_id: str, db: Session) -> None:
        """Delete an attachment with its unsold file products and bundle entries."""
        attachment = AttachmentService.get_attachment(attachment_id, db)
        if not attachment:
            raise NotFound("Attachment not found")
        AttachmentService.ensure_unsold([attachment_id], db)
        db.delete(attachment)
        db.commit()


class MediaService:
    """Turns stored references into short-lived signed URLs."""

    @staticmethod
    def video_url(lesson: Lesson, storage: StorageClient, expires_in: int) -> str:
        bucket = storage.buckets["videos"]
        ref = lesson.storage_key or lesson.video_url
        if not ref:
            raise NotFound("Video not available for this lesson")
        return storage.presign_get(bucket, storage.normalize_key(bucket, ref), expires_in)

    @staticmethod
    def attachment_url(attachment: Attachment, storage: StorageClient, expires_in: int) -> str:
        bucket = storage.buckets["attachments"]
        if not attachment.file_url:
            raise NotFound("File URL not available")
        return storage.presign_get(bucket, storage.normalize_key(bucket, attachment.file_url), expires_in)
