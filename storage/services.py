# storage/services.py
import logging

from sqlalchemy.orm import Session
from courses.models import Attachment, Course, Lesson, Module
from shop.models import Product
from storage.client import ALLOWED_EXTENSIONS, UPLOAD_URL_TTL, StorageClient, file_extension, generate_storage_key
from storage.schemas import UploadComplete, UploadConfirmation, UploadRequest, UploadTicket
from errors import NotFound, ValidationError
from config import settings

logger = logging.getLogger(__name__)

FILE_TYPES = ("video", "attachment", "thumbnail", "product-thumbnail")


def _check_file_type(file_type: str) -> None:
    if file_type not in FILE_TYPES:
        raise ValidationError(f"fileType must be one of: {', '.join(FILE_TYPES)}")


def _lesson_course_id(lesson_id: str, db: Session):
    row = db.query(Lesson.id, Module.course_id).join(Module, Module.id == Lesson.module_id).filter(
        Lesson.id == lesson_id
    ).first()
    return row.course_id if row else None


class UploadService:
    @staticmethod
    def request_upload(body: UploadRequest, storage: StorageClient, db: Session) -> UploadTicket:
        """Validate the target and mint a presigned PUT URL for it."""
        _check_file_type(body.file_type)
        allowed = ALLOWED_EXTENSIONS[body.file_type]
        if file_extension(body.filename) not in allowed:
            raise ValidationError(f"Invalid {body.file_type} format. Allowed: {', '.join(allowed)}")

        if body.file_type == "video":
            if not body.lesson_id:
                raise ValidationError("lessonId is required for video uploads")
            course_id = _lesson_course_id(body.lesson_id, db)
            if course_id is None:
                raise NotFound("Lesson not found")
            resource_id = body.lesson_id
        elif body.file_type == "attachment":
            if not body.attachment_id:
                raise ValidationError("attachmentId is required for attachment uploads")
            attachment = db.query(Attachment).filter(Attachment.id == body.attachment_id).first()
            if not attachment:
                raise NotFound("Attachment not found")
            resource_id = attachment.id
            # Standalone files are keyed under their own id
            course_id = (_lesson_course_id(attachment.lesson_id, db) if attachment.lesson_id else None) or resource_id
        elif body.file_type == "thumbnail":
            if not body.course_id:
                raise ValidationError("courseId is required for thumbnail uploads")
            if not db.query(Course).filter(Course.id == body.course_id).first():
                raise NotFound("Course not found")
            course_id = resource_id = body.course_id
        else:
            if not body.product_id:
                raise ValidationError("productId is required for product thumbnail uploads")
            if not db.query(Product).filter(Product.id == body.product_id).first():
                raise NotFound("Product not found")
            course_id = resource_id = body.product_id

        bucket = storage.bucket_for(body.file_type)
        storage_key = generate_storage_key(body.file_type, body.filename, course_id, resource_id)
        upload_url = storage.presign_put(bucket, storage_key, UPLOAD_URL_TTL)
        logger.info(f"Issued upload URL for {bucket}/{storage_key}")
        return UploadTicket(upload_url=upload_url, storage_key=storage_key, bucket=bucket, expires_in=UPLOAD_URL_TTL)

    @staticmethod
    def complete_upload(body: UploadComplete, storage: StorageClient, db: Session) -> UploadConfirmation:
        """Confirm the object landed in storage, then record its reference."""
        _check_file_type(body.file_type)
        if body.bucket:
            if body.bucket not in storage.buckets.values():
                raise ValidationError("Unknown bucket")
            bucket = body.bucket
        else:
            bucket = storage.bucket_for(body.file_type)

        if body.file_type == "video" and not body.lesson_id:
            raise ValidationError("lessonId is required for video uploads")
        if body.file_type == "attachment" and not body.attachment_id:
            raise ValidationError("attachmentId is required for attachment uploads")

        if not storage.object_exists(bucket, body.storage_key):
            raise NotFound("File not found in storage. Upload may have failed.")

        max_size = settings.MAX_FILE_SIZE_MB * 1024 * 1024
        if body.file_size and body.file_size > max_size:
            logger.warning(f"Uploaded file {body.storage_key} is {body.file_size} bytes, above {max_size}")

        file_url = storage.file_url(bucket, body.storage_key)

        if body.file_type == "video":
            lesson = db.query(Lesson).filter(Lesson.id == body.lesson_id).first()
            if not lesson:
                raise NotFound("Lesson not found")
            lesson.storage_key = body.storage_key
            lesson.video_url = file_url
            if body.duration is not None:
                lesson.duration = body.duration
            message = "Video upload confirmed"
        elif body.file_type == "attachment":
            attachment = db.query(Attachment).filter(Attachment.id == body.attachment_id).first()
            if not attachment:
                raise NotFound("Attachment not found")
            attachment.file_url = file_url
            message = "Attachment upload confirmed"
        elif body.file_type == "thumbnail":
            if body.course_id:
                course = db.query(Course).filter(Course.id == body.course_id).first()
                if not course:
                    raise NotFound("Course not found")
                course.thumbnail_url = file_url
            message = "Thumbnail upload confirmed"
        else:
            if body.product_id:
                product = db.query(Product).filter(Product.id == body.product_id).first()
                if not product:
                    raise NotFound("Product not found")
                product.thumbnail_url = file_url
            message = "Product thumbnail upload confirmed"

        db.commit()
        logger.info(f"Recorded upload {bucket}/{body.storage_key}")
        return UploadConfirmation(message=message, file_url=file_url, storage_key=body.storage_key)
