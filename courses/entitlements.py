# courses/entitlements.py
"""Single place that decides who may see what.

Every content route goes through ``EntitlementService``; route handlers never
compare permission levels themselves.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auth.models import User
from courses.models import Attachment, Course, Lesson, Module, UserDownload
from errors import Forbidden, NotFound, Unauthenticated
from shop.models import FileProduct, FilePurchase, Product, ProductAttachment, ProductPurchase
from subscription.models import Tier

logger = logging.getLogger(__name__)


class ResourceKind(str, Enum):
    COURSE = "course"
    LESSON = "lesson"
    ATTACHMENT = "attachment"
    FILE_PRODUCT = "file_product"
    BUNDLE = "bundle"


@dataclass(frozen=True)
class Resource:
    kind: ResourceKind
    id: str


@dataclass(frozen=True)
class DownloadDecision:
    allowed: bool
    reason: Optional[str] = None


def month_start(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.utcnow()
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class EntitlementService:
    """Resolves access for one request's database session."""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def is_admin(user: Optional[User]) -> bool:
        return bool(user and user.profile and user.profile.is_admin)

    def permission_level(self, user: Optional[User]) -> int:
        """Caller's tier level; 0 for anonymous callers or a profile without tier."""
        if user is None or user.profile is None or user.profile.tier is None:
            return 0
        return user.profile.tier.permission_level

    def _tier_level(self, tier_id: int) -> Optional[int]:
        tier = self.db.query(Tier).filter(Tier.id == tier_id).first()
        return tier.permission_level if tier else None

    def _meets(self, user: User, tier_id: int) -> bool:
        required = self._tier_level(tier_id)
        if required is None:
            logger.warning(f"Tier {tier_id} referenced by content does not exist")
            return False
        return self.permission_level(user) >= required

    def _course_for_lesson(self, lesson_id: str) -> Optional[Course]:
        return self.db.query(Course).join(Module, Module.course_id == Course.id).join(
            Lesson, Lesson.module_id == Module.id
        ).filter(Lesson.id == lesson_id).first()

    def _attachment_course(self, attachment: Attachment) -> Optional[Course]:
        if not attachment.lesson_id:
            return None
        return self._course_for_lesson(attachment.lesson_id)

    def _owns_attachment(self, user: User, attachment_id: str) -> bool:
        """True if a file-product or bundle purchase covers the attachment."""
        file_purchase = self.db.query(FilePurchase).join(
            FileProduct, FileProduct.id == FilePurchase.file_product_id
        ).filter(
            FilePurchase.user_id == user.id,
            FileProduct.attachment_id == attachment_id,
        ).first()
        if file_purchase:
            return True
        bundle_purchase = self.db.query(ProductPurchase).join(
            ProductAttachment, ProductAttachment.product_id == ProductPurchase.product_id
        ).filter(
            ProductPurchase.user_id == user.id,
            ProductAttachment.attachment_id == attachment_id,
        ).first()
        return bundle_purchase is not None

    def _course_unlocked(self, user: User, course: Course) -> bool:
        return course.is_published and self._meets(user, course.minimum_tier_id)

    def _unpublished(self, resource: Resource) -> bool:
        """True when the course or lesson belongs to a draft course."""
        kind = ResourceKind(resource.kind)
        if kind == ResourceKind.COURSE:
            course = self.db.query(Course).filter(Course.id == resource.id).first()
        elif kind == ResourceKind.LESSON:
            course = self._course_for_lesson(resource.id)
        else:
            return False
        return course is not None and not course.is_published

    def _attachment_by_tier(self, user: User, attachment: Attachment) -> bool:
        course = self._attachment_course(attachment)
        if course is not None and not self._course_unlocked(user, course):
            return False
        return self._meets(user, attachment.minimum_tier_id)

    def _exists(self, resource: Resource) -> bool:
        model = {
            ResourceKind.COURSE: Course,
            ResourceKind.LESSON: Lesson,
            ResourceKind.ATTACHMENT: Attachment,
            ResourceKind.FILE_PRODUCT: FileProduct,
            ResourceKind.BUNDLE: Product,
        }[ResourceKind(resource.kind)]
        return self.db.query(model.id).filter(model.id == resource.id).first() is not None

    def has_access(self, user: Optional[User], resource: Resource) -> bool:
        if user is None:
            return False
        kind = ResourceKind(resource.kind)
        if not self._exists(resource):
            return False
        if self.is_admin(user):
            return True

        if kind == ResourceKind.COURSE:
            course = self.db.query(Course).filter(Course.id == resource.id).first()
            return self._course_unlocked(user, course)

        if kind == ResourceKind.LESSON:
            course = self._course_for_lesson(resource.id)
            return course is not None and self._course_unlocked(user, course)

        if kind == ResourceKind.ATTACHMENT:
            attachment = self.db.query(Attachment).filter(Attachment.id == resource.id).first()
            return self._attachment_by_tier(user, attachment) or self._owns_attachment(user, attachment.id)

        if kind == ResourceKind.FILE_PRODUCT:
            if self.has_purchased_file(user, resource.id):
                return True
            product = self.db.query(FileProduct).filter(FileProduct.id == resource.id).first()
            attachment = product.attachment
            return attachment is not None and self._attachment_by_tier(user, attachment)

        if kind == ResourceKind.BUNDLE:
            if self.has_purchased_product(user, resource.id):
                return True
            items = self.db.query(ProductAttachment).filter(ProductAttachment.product_id == resource.id).all()
            return bool(items) and all(self._attachment_by_tier(user, item.attachment) for item in items)

        return False

    def require_access(self, user: Optional[User], resource: Resource) -> None:
        """Raise 401, 404 or 403; return quietly when access is granted.

        Draft courses and their lessons are reported as missing to non-admins.
        """
        if user is None:
            raise Unauthenticated()
        not_found = f"{ResourceKind(resource.kind).value.replace('_', ' ').capitalize()} not found"
        if not self._exists(resource):
            raise NotFound(not_found)
        if not self.is_admin(user) and self._unpublished(resource):
            raise NotFound(not_found)
        if not self.has_access(user, resource):
            raise Forbidden("Forbidden: Insufficient tier level")

    def has_purchased_file(self, user: User, file_product_id: str) -> bool:
        return self.db.query(FilePurchase).filter(
            FilePurchase.user_id == user.id,
            FilePurchase.file_product_id == file_product_id,
        ).first() is not None

    def has_purchased_product(self, user: User, product_id: str) -> bool:
        return self.db.query(ProductPurchase).filter(
            ProductPurchase.user_id == user.id,
            ProductPurchase.product_id == product_id,
        ).first() is not None

    def monthly_download_count(self, user: User, now: Optional[datetime] = None) -> int:
        return self.db.query(UserDownload).filter(
            UserDownload.user_id == user.id,
            UserDownload.downloaded_at >= month_start(now),
        ).count()

    def can_download(self, user: Optional[User], attachment_id: str) -> DownloadDecision:
        if user is None:
            return DownloadDecision(False, "Not authenticated")
        if not self.has_access(user, Resource(ResourceKind.ATTACHMENT, attachment_id)):
            return DownloadDecision(False, "You do not have access to this attachment. Upgrade your plan.")
        if self.is_admin(user) or self._owns_attachment(user, attachment_id):
            return DownloadDecision(True)

        tier = user.profile.tier if user.profile else None
        limit = tier.download_limit if tier else None
        if limit is None:
            return DownloadDecision(True)

        # Re-downloading a file already counted this month does not use up quota
        already = self.db.query(UserDownload).filter(
            UserDownload.user_id == user.id,
            UserDownload.attachment_id == attachment_id,
            UserDownload.downloaded_at >= month_start(),
        ).first()
        if already:
            return DownloadDecision(True)

        if self.monthly_download_count(user) >= limit:
            return DownloadDecision(
                False,
                f"You reached the limit of {limit} downloads this month. Upgrade your plan for unlimited downloads.",
            )
        return DownloadDecision(True)

    def record_download(self, user: User, attachment_id: str) -> UserDownload:
        """Upsert the (user, attachment) download row, refreshing ``downloaded_at``."""
        decision = self.can_download(user, attachment_id)
        if not decision.allowed:
            raise Forbidden(decision.reason)

        now = datetime.utcnow()
        download = self.db.query(UserDownload).filter(
            UserDownload.user_id == user.id,
            UserDownload.attachment_id == attachment_id,
        ).first()
        if download:
            download.downloaded_at = now
            self.db.commit()
            return download

        download = UserDownload(user_id=user.id, attachment_id=attachment_id, downloaded_at=now)
        self.db.add(download)
        try:
            self.db.commit()
        except IntegrityError:
            # Concurrent first download; refresh the winner's timestamp instead
            self.db.rollback()
            download = self.db.query(UserDownload).filter(
                UserDownload.user_id == user.id,
                UserDownload.attachment_id == attachment_id,
            ).one()
            download.downloaded_at = now
            self.db.commit()
        return download
