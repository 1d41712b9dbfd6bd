# courses/schemas.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional


class AttachmentResponse(BaseModel):
    id: str
    lesson_id: Optional[str] = None
    file_name: str
    file_type: Optional[str] = None
    minimum_tier_id: int
    created_at: datetime

    class Config:
        from_attributes = True


class LessonResponse(BaseModel):
    id: str
    module_id: str
    title: str
    duration: Optional[int] = None
    order: int
    has_video: bool = False
    attachments: List[AttachmentResponse] = []

    class Config:
        from_attributes = True


class ModuleResponse(BaseModel):
    id: str
    course_id: str
    title: str
    order: int
    lessons: List[LessonResponse] = []

    class Config:
        from_attributes = True


class CourseSummary(BaseModel):
    """Schema for course listings."""
    id: str
    title: str
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    minimum_tier_id: int
    is_published: bool
    created_at: datetime

    class Config:
        from_attributes = True


class CourseDetail(CourseSummary):
    """Course with its full module/lesson/attachment tree."""
    modules: List[ModuleResponse] = []


class SignedUrlResponse(BaseModel):
    url: str
    expires_in: int = Field(alias="expiresIn")
    file_name: Optional[str] = Field(default=None, alias="fileName")

    class Config:
        populate_by_name = True


class AttachmentTierResponse(BaseModel):
    tier_name: str = Field(alias="tierName")
    tier_permission_level: int = Field(alias="tierPermissionLevel")

    class Config:
        populate_by_name = True


class PermissionLevelResponse(BaseModel):
    permission_level: int = Field(alias="permissionLevel")

    class Config:
        populate_by_name = True


class CourseCreate(BaseModel):
    title: str
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    minimum_tier_id: int
    is_published: bool = False


class CourseUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    minimum_tier_id: Optional[int] = None
    is_published: Optional[bool] = None


class ModuleCreate(BaseModel):
    title: str
    order: int = 0


class ModuleUpdate(BaseModel):
    title: Optional[str] = None
    order: Optional[int] = None


class LessonCreate(BaseModel):
    title: str
    duration: Optional[int] = None
    video_url: Optional[str] = None
    order: int = 0


class LessonUpdate(BaseModel):
    title: Optional[str] = None
    duration: Optional[int] = None
    video_url: Optional[str] = None
    order: Optional[int] = None


class AttachmentCreate(BaseModel):
    lesson_id: Optional[str] = None
    file_name: str
    file_type: Optional[str] = None
    file_url: Optional[str] = None
    minimum_tier_id: int


class AttachmentUpdate(BaseModel):
    lesson_id: Optional[str] = None
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    file_url: Optional[str] = None
    minimum_tier_id: Optional[int] = None
