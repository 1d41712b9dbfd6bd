# storage/schemas.py
from pydantic import BaseModel, Field
from typing import Optional


class UploadRequest(BaseModel):
    """Ask for a presigned PUT URL for a direct-to-storage upload."""
    filename: str
    file_type: str = Field(alias="fileType")
    lesson_id: Optional[str] = Field(default=None, alias="lessonId")
    attachment_id: Optional[str] = Field(default=None, alias="attachmentId")
    course_id: Optional[str] = Field(default=None, alias="courseId")
    product_id: Optional[str] = Field(default=None, alias="productId")
    content_type: Optional[str] = Field(default=None, alias="contentType")

    class Config:
        populate_by_name = True


class UploadTicket(BaseModel):
    upload_url: str = Field(alias="uploadUrl")
    storage_key: str = Field(alias="storageKey")
    bucket: str
    expires_in: int = Field(alias="expiresIn")

    class Config:
        populate_by_name = True


class UploadComplete(BaseModel):
    storage_key: str = Field(alias="storageKey")
    file_type: str = Field(alias="fileType")
    lesson_id: Optional[str] = Field(default=None, alias="lessonId")
    attachment_id: Optional[str] = Field(default=None, alias="attachmentId")
    course_id: Optional[str] = Field(default=None, alias="courseId")
    product_id: Optional[str] = Field(default=None, alias="productId")
    bucket: Optional[str] = None
    file_size: Optional[int] = Field(default=None, alias="fileSize")
    duration: Optional[int] = None

    class Config:
        populate_by_name = True


class UploadConfirmation(BaseModel):
    success: bool = True
    message: str
    file_url: str = Field(alias="fileUrl")
    storage_key: str = Field(alias="storageKey")

    class Config:
        populate_by_name = True
