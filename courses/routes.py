# courses/routes.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
from courses.entitlements import EntitlementService, Resource, ResourceKind
from courses.schemas import (
    AttachmentResponse,
    AttachmentTierResponse,
    CourseDetail,
    CourseSummary,
    PermissionLevelResponse,
    SignedUrlResponse,
)
from courses.services import AttachmentService, CourseService, MediaService
from auth.routes import get_current_user, get_optional_user
from auth.models import User
from database import get_db
from dependencies import get_storage_client
from errors import Forbidden, NotFound, Unauthenticated
from storage.client import DOWNLOAD_URL_TTL, PREVIEW_URL_TTL, VIDEO_URL_TTL

router = APIRouter(tags=["courses"])


@router.get("/courses", response_model=List[CourseSummary])
def list_courses(db: Session = Depends(get_db), current_user: Optional[User] = Depends(get_optional_user)):
    """List courses the caller's tier unlocks."""
    return CourseService.list_courses(current_user, db)


@router.get("/courses/{course_id}", response_model=CourseDetail)
def get_course(
    course_id: str,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    """Course with modules, lessons and attachments."""
    EntitlementService(db).require_access(current_user, Resource(ResourceKind.COURSE, course_id))
    return CourseService.get_course(course_id, db)


@router.get("/videos/{lesson_id}", response_model=SignedUrlResponse, response_model_exclude_none=True)
def get_video_url(
    lesson_id: str,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
    storage=Depends(get_storage_client),
):
    """Signed URL for a lesson video, valid for five minutes."""
    EntitlementService(db).require_access(current_user, Resource(ResourceKind.LESSON, lesson_id))
    lesson = CourseService.get_lesson(lesson_id, db)
    url = MediaService.video_url(lesson, storage, VIDEO_URL_TTL)
    return SignedUrlResponse(url=url, expires_in=VIDEO_URL_TTL)


@router.get("/downloads/{attachment_id}", response_model=SignedUrlResponse)
def download_attachment(
    attachment_id: str,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
    storage=Depends(get_storage_client),
):
    """Signed download URL valid for 60 seconds; records the download."""
    if current_user is None:
        raise Unauthenticated()
    attachment = AttachmentService.get_attachment(attachment_id, db)
    if not attachment:
        raise NotFound("Attachment not found")

    entitlements = EntitlementService(db)
    decision = entitlements.can_download(current_user, attachment_id)
    if not decision.allowed:
        raise Forbidden(decision.reason)

    url = MediaService.attachment_url(attachment, storage, DOWNLOAD_URL_TTL)
    entitlements.record_download(current_user, attachment_id)
    return SignedUrlResponse(url=url, expires_in=DOWNLOAD_URL_TTL, file_name=attachment.file_name)


@router.get("/preview/{attachment_id}", response_model=SignedUrlResponse)
def preview_attachment(
    attachment_id: str,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
    storage=Depends(get_storage_client),
):
    """Signed inline-view URL valid for an hour; not counted as a download."""
    EntitlementService(db).require_access(current_user, Resource(ResourceKind.ATTACHMENT, attachment_id))
    attachment = AttachmentService.get_attachment(attachment_id, db)
    url = MediaService.attachment_url(attachment, storage, PREVIEW_URL_TTL)
    return SignedUrlResponse(url=url, expires_in=PREVIEW_URL_TTL, file_name=attachment.file_name)


@router.get("/attachments", response_model=List[AttachmentResponse])
def list_attachments(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """The caller's file library."""
    return AttachmentService.list_accessible(current_user, db)


@router.get("/attachments/{attachment_id}/tier", response_model=AttachmentTierResponse)
def get_attachment_tier(
    attachment_id: str,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    EntitlementService(db).require_access(current_user, Resource(ResourceKind.ATTACHMENT, attachment_id))
    tier = AttachmentService.get_attachment(attachment_id, db).minimum_tier
    if tier is None:
        raise NotFound("Tier information not found")
    return AttachmentTierResponse(tier_name=tier.name, tier_permission_level=tier.permission_level)


@router.get("/user/permission-level", response_model=PermissionLevelResponse)
def get_permission_level(db: Session = Depends(get_db), current_user: Optional[User] = Depends(get_optional_user)):
    """Caller's tier level; 0 when anonymous."""
    return PermissionLevelResponse(permission_level=EntitlementService(db).permission_level(current_user))
