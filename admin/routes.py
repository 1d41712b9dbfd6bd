# admin/routes.py
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
from auth.models import AdminActionLog, Profile, User
from auth.schemas import AdminActionLogResponse, AdminUserUpdate, UserResponse
from auth.routes import check_admin_role
from courses.models import Course
from courses.schemas import (
    AttachmentCreate,
    AttachmentResponse,
    AttachmentUpdate,
    CourseCreate,
    CourseDetail,
    CourseSummary,
    CourseUpdate,
    LessonCreate,
    LessonResponse,
    LessonUpdate,
    ModuleCreate,
    ModuleResponse,
    ModuleUpdate,
)
from courses.services import AttachmentService, CourseService
from shop.schemas import (
    FileProductCreate,
    FileProductImageCreate,
    FileProductImageResponse,
    FileProductImageUpdate,
    FileProductResponse,
    FileProductUpdate,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
)
from shop.services import ShopService
from subscription.models import Subscription
from subscription.schemas import SubscriptionResponse, TierCreate, TierResponse, TierUpdate
from subscription.services import TierService
from database import get_db
from errors import NotFound, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _log(db: Session, admin: User, action: str) -> None:
    db.add(AdminActionLog(admin_id=admin.id, action=action))
    db.commit()
    logger.info(f"Admin {admin.id}: {action}")


@router.get("/users", response_model=List[UserResponse])
def get_users(
    tier_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_admin_role)
):
    """Retrieve users with optional tier filter."""
    query = db.query(User).join(Profile, Profile.id == User.id)
    if tier_id is not None:
        query = query.filter(Profile.tier_id == tier_id)
    return [UserResponse.from_user(user) for user in query.order_by(User.created_at.desc()).all()]


@router.patch("/users/{user_id}", response_model=UserResponse)
def update_user(
    user_id: str,
    body: AdminUserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_admin_role)
):
    """Change a user's name, tier or admin flag."""
    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.profile:
        raise NotFound("User not found")
    if body.tier_id is not None:
        if not TierService.get_tier(body.tier_id, db):
            raise NotFound("Tier not found")
        user.profile.tier_id = body.tier_id
    if body.is_admin is not None:
        if user.id == current_user.id and not body.is_admin:
            raise ValidationError("You cannot remove your own admin access")
        user.profile.is_admin = body.is_admin
    if body.name is not None:
        user.name = body.name
    db.commit()
    db.refresh(user)
    _log(db, current_user, f"Updated user {user_id}: {body.model_dump(exclude_unset=True)}")
    return UserResponse.from_user(user)


@router.delete("/users/{user_id}")
def delete_user(user_id: str, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)) -> dict:
    """Delete a user together with purchases, progress and downloads."""
    if user_id == current_user.id:
        raise ValidationError("You cannot delete your own account")
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound("User not found")
    db.delete(user)
    db.commit()
    _log(db, current_user, f"Deleted user {user_id}")
    return {"message": "User deleted"}


@router.get("/subscriptions", response_model=List[SubscriptionResponse])
def get_subscriptions(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_admin_role)
):
    """Retrieve subscriptions with optional status filter."""
    query = db.query(Subscription)
    if status:
        query = query.filter(Subscription.status == status)
    return query.order_by(Subscription.created_at.desc()).all()


@router.post("/tiers", response_model=TierResponse)
def create_tier(body: TierCreate, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)):
    tier = TierService.create_tier(body, db)
    _log(db, current_user, f"Created tier {tier.id} ({tier.name})")
    return tier


@router.put("/tiers/{tier_id}", response_model=TierResponse)
def update_tier(
    tier_id: int, body: TierUpdate, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)
):
    tier = TierService.update_tier(tier_id, body, db)
    _log(db, current_user, f"Updated tier {tier_id}")
    return tier


@router.delete("/tiers/{tier_id}")
def delete_tier(tier_id: int, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)) -> dict:
    TierService.delete_tier(tier_id, db)
    _log(db, current_user, f"Deleted tier {tier_id}")
    return {"message": "Tier deleted"}


@router.get("/courses", response_model=List[CourseSummary])
def get_courses(db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)):
    """Every course, published or not."""
    return db.query(Course).order_by(Course.created_at.desc()).all()


@router.get("/courses/{course_id}", response_model=CourseDetail)
def get_course(course_id: str, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)):
    course = CourseService.get_course(course_id, db)
    if not course:
        raise NotFound("Course not found")
    return course


@router.post("/courses", response_model=CourseSummary)
def create_course(body: CourseCreate, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)):
    course = CourseService.create_course(body, db)
    _log(db, current_user, f"Created course {course.id}")
    return course


@router.put("/courses/{course_id}", response_model=CourseSummary)
def update_course(
    course_id: str, body: CourseUpdate, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)
):
    course = CourseService.update_course(course_id, body, db)
    _log(db, current_user, f"Updated course {course_id}")
    return course


@router.delete("/courses/{course_id}")
def delete_course(course_id: str, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)) -> dict:
    CourseService.delete_course(course_id, db)
    _log(db, current_user, f"Deleted course {course_id}")
    return {"message": "Course deleted"}


@router.post("/courses/{course_id}/modules", response_model=ModuleResponse)
def create_module(
    course_id: str, body: ModuleCreate, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)
):
    module = CourseService.create_module(course_id, body, db)
    _log(db, current_user, f"Created module {module.id} in course {course_id}")
    return module


@router.put("/modules/{module_id}", response_model=ModuleResponse)
def update_module(
    module_id: str, body: ModuleUpdate, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)
):
    module = CourseService.update_module(module_id, body, db)
    _log(db, current_user, f"Updated module {module_id}")
    return module


@router.delete("/modules/{module_id}")
def delete_module(module_id: str, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)) -> dict:
    CourseService.delete_module(module_id, db)
    _log(db, current_user, f"Deleted module {module_id}")
    return {"message": "Module deleted"}


@router.post("/modules/{module_id}/lessons", response_model=LessonResponse)
def create_lesson(
    module_id: str, body: LessonCreate, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)
):
    lesson = CourseService.create_lesson(module_id, body, db)
    _log(db, current_user, f"Created lesson {lesson.id} in module {module_id}")
    return lesson


@router.put("/lessons/{lesson_id}", response_model=LessonResponse)
def update_lesson(
    lesson_id: str, body: LessonUpdate, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)
):
    lesson = CourseService.update_lesson(lesson_id, body, db)
    _log(db, current_user, f"Updated lesson {lesson_id}")
    return lesson


@router.delete("/lessons/{lesson_id}")
def delete_lesson(lesson_id: str, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)) -> dict:
    CourseService.delete_lesson(lesson_id, db)
    _log(db, current_user, f"Deleted lesson {lesson_id}")
    return {"message": "Lesson deleted"}


@router.get("/attachments", response_model=List[AttachmentResponse])
def get_attachments(db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)):
    return AttachmentService.list_accessible(current_user, db)


@router.post("/attachments", response_model=AttachmentResponse)
def create_attachment(
    body: AttachmentCreate, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)
):
    attachment = AttachmentService.create_attachment(body, db)
    _log(db, current_user, f"Created attachment {attachment.id}")
    return attachment


@router.put("/attachments/{attachment_id}", response_model=AttachmentResponse)
def update_attachment(
    attachment_id: str, body: AttachmentUpdate, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)
):
    attachment = AttachmentService.update_attachment(attachment_id, body, db)
    _log(db, current_user, f"Updated attachment {attachment_id}")
    return attachment


@router.delete("/attachments/{attachment_id}")
def delete_attachment(
    attachment_id: str, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)
) -> dict:
    AttachmentService.delete_attachment(attachment_id, db)
    _log(db, current_user, f"Deleted attachment {attachment_id}")
    return {"message": "Attachment deleted"}


@router.get("/file-products", response_model=List[FileProductResponse])
def get_file_products(db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)):
    return ShopService.list_file_products(None, db, include_inactive=True)


@router.post("/file-products", response_model=FileProductResponse)
def create_file_product(
    body: FileProductCreate, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)
):
    product = ShopService.create_file_product(body, db)
    _log(db, current_user, f"Created file product {product.id}")
    return product


@router.put("/file-products/{file_product_id}", response_model=FileProductResponse)
def update_file_product(
    file_product_id: str,
    body: FileProductUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_admin_role)
):
    product = ShopService.update_file_product(file_product_id, body, db)
    _log(db, current_user, f"Updated file product {file_product_id}")
    return product


@router.delete("/file-products/{file_product_id}")
def delete_file_product(
    file_product_id: str, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)
) -> dict:
    ShopService.delete_file_product(file_product_id, db)
    _log(db, current_user, f"Deleted file product {file_product_id}")
    return {"message": "File product deleted"}


@router.post("/file-products/{file_product_id}/images", response_model=FileProductImageResponse)
def add_file_product_image(
    file_product_id: str,
    body: FileProductImageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_admin_role)
):
    image = ShopService.add_image(file_product_id, body, db)
    _log(db, current_user, f"Added image {image.id} to file product {file_product_id}")
    return image


@router.put("/file-product-images/{image_id}", response_model=FileProductImageResponse)
def reorder_file_product_image(
    image_id: str,
    body: FileProductImageUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_admin_role)
):
    image = ShopService.reorder_image(image_id, body, db)
    _log(db, current_user, f"Moved image {image_id} to position {body.display_order}")
    return image


@router.delete("/file-product-images/{image_id}")
def delete_file_product_image(
    image_id: str, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)
) -> dict:
    ShopService.delete_image(image_id, db)
    _log(db, current_user, f"Deleted image {image_id}")
    return {"message": "Image deleted"}


@router.get("/products", response_model=List[ProductResponse])
def get_products(db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)):
    return ShopService.list_products(None, db, include_inactive=True)


@router.post("/products", response_model=ProductResponse)
def create_product(body: ProductCreate, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)):
    product = ShopService.create_product(body, db)
    _log(db, current_user, f"Created product {product.id}")
    return product


@router.put("/products/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: str, body: ProductUpdate, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)
):
    product = ShopService.update_product(product_id, body, db)
    _log(db, current_user, f"Updated product {product_id}")
    return product


@router.delete("/products/{product_id}")
def delete_product(product_id: str, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)) -> dict:
    ShopService.delete_product(product_id, db)
    _log(db, current_user, f"Deleted product {product_id}")
    return {"message": "Product deleted"}


@router.get("/logs", response_model=List[AdminActionLogResponse])
def get_admin_logs(db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)):
    """Retrieve admin action logs."""
    return db.query(AdminActionLog).order_by(AdminActionLog.timestamp.desc()).all()
