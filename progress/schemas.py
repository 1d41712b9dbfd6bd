# progress/schemas.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class ProgressUpdate(BaseModel):
    lesson_id: Optional[str] = Field(default=None, alias="lessonId")
    time_watched: Optional[float] = Field(default=None, alias="timeWatched", ge=0)
    is_completed: Optional[bool] = Field(default=None, alias="isCompleted")

    class Config:
        populate_by_name = True


class ProgressSnapshot(BaseModel):
    lesson_id: str = Field(alias="lessonId")
    time_watched: int = Field(alias="timeWatched")
    is_completed: bool = Field(alias="isCompleted")
    last_watched_at: Optional[datetime] = Field(default=None, alias="lastWatchedAt")

    class Config:
        populate_by_name = True
        from_attributes = True


class ProgressResult(BaseModel):
    success: bool = True
    progress: ProgressSnapshot


class ProgressLookup(BaseModel):
    progress: Optional[ProgressSnapshot] = None


class CourseProgress(BaseModel):
    course_id: str = Field(alias="courseId")
    completed_lessons: int = Field(alias="completedLessons")
    total_lessons: int = Field(alias="totalLessons")
    percentage: int

    class Config:
        populate_by_name = True


class CertificateResponse(BaseModel):
    id: str
    course_id: str
    course_title: Optional[str] = None
    certificate_url: Optional[str] = None
    issued_at: datetime
