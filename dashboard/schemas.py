# dashboard/schemas.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional


class FavoriteStatus(BaseModel):
    is_favorite: bool = Field(alias="isFavorite")

    class Config:
        populate_by_name = True


class ContinueWatching(BaseModel):
    """The lesson the user watched most recently."""
    lesson_id: str = Field(alias="lessonId")
    lesson_title: str = Field(alias="lessonTitle")
    duration: Optional[int] = None
    module_title: str = Field(alias="moduleTitle")
    course_id: str = Field(alias="courseId")
    course_title: str = Field(alias="courseTitle")
    time_watched: int = Field(alias="timeWatched")
    is_completed: bool = Field(alias="isCompleted")
    last_watched_at: datetime = Field(alias="lastWatchedAt")

    class Config:
        populate_by_name = True


class ContinueWatchingResponse(BaseModel):
    lesson: Optional[ContinueWatching] = None


class LessonPlanItem(BaseModel):
    text: str
    completed: bool = False


class LessonPlanCreate(BaseModel):
    title: str
    course_id: Optional[str] = Field(default=None, alias="courseId")
    items: List[LessonPlanItem] = []
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")

    class Config:
        populate_by_name = True


class LessonPlanUpdate(BaseModel):
    """Only the fields sent are changed; ``courseId: null`` unlinks the course."""
    title: Optional[str] = None
    course_id: Optional[str] = Field(default=None, alias="courseId")
    items: Optional[List[LessonPlanItem]] = None
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")

    class Config:
        populate_by_name = True


class LessonPlanResponse(BaseModel):
    id: str
    title: str
    course_id: Optional[str] = Field(default=None, alias="courseId")
    items: List[LessonPlanItem] = []
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    class Config:
        populate_by_name = True
        from_attributes = True
