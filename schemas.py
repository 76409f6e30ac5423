"""
Database Schemas for the video hosting backend

The video model maps to the "videos" MongoDB collection; field names are the
stored names. Related collections read by the video queries:
- users         (username, avatar.url, watchHistory)
- likes         (video, likedBy)
- comments      (video)
- subscriptions (channel, subscriber)
"""

from typing import Any, List, Optional

from bson import ObjectId
from pydantic import BaseModel, Field


class MediaAsset(BaseModel):
    url: str
    public_id: str = Field(..., description="Storage key used to delete the asset")


class Video(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    duration: float = Field(0, ge=0, description="Seconds, as reported by storage")
    videoFile: MediaAsset
    thumbnail: MediaAsset
    views: int = Field(0, ge=0)
    isPublished: bool = False
    owner: str = Field(..., description="Owner user id")

    def to_document(self) -> dict:
        doc = self.model_dump()
        doc["owner"] = ObjectId(self.owner)
        return doc


class VideoListOptions(BaseModel):
    """Listing filters. ``sort_by`` only applies when ``sort_type`` is given too;
    otherwise newest videos come first."""

    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1)
    query: Optional[str] = None
    user_id: Optional[str] = None
    sort_by: Optional[str] = None
    sort_type: Optional[str] = None


class ApiResponse(BaseModel):
    statusCode: int = 200
    data: Any = None
    message: str = "Success"
    success: bool = True


class ErrorResponse(BaseModel):
    statusCode: int
    data: None = None
    message: str
    success: bool = False
    errors: List[Any] = Field(default_factory=list)


class PublishStatus(BaseModel):
    isPublished: bool


def respond(data: Any = None, message: str = "Success", status_code: int = 200) -> ApiResponse:
    return ApiResponse(statusCode=status_code, data=data, message=message, success=status_code < 400)
