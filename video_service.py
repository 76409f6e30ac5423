from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from bson import ObjectId
from loguru import logger
from pymongo import ReturnDocument
from pymongo.database import Database

from database import COMMENTS, LIKES, SUBSCRIPTIONS, USERS, VIDEOS, aggregate_paginate, create_document, objid
from errors import ForbiddenError, InternalError, NotFoundError, UploadError, ValidationError
from schemas import MediaAsset, PublishStatus, Video, VideoListOptions
from storage import MediaStorage

Cleanup = Callable[[Dict[str, Any]], None]


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


class VideoService:
    """Video CRUD over MongoDB and the media store.

    Every call takes the acting user's id explicitly; nothing is read from
    request state.
    """

    def __init__(
        self,
        db: Database,
        storage: MediaStorage,
        search_index: str = "search-videos",
        on_delete: Optional[List[Cleanup]] = None,
    ):
        self.db = db
        self.storage = storage
        self.search_index = search_index
        # Runs in order after the video document is gone. A raising step
        # aborts the remaining ones.
        self.on_delete: List[Cleanup] = on_delete if on_delete is not None else [
            self._delete_thumbnail_asset,
            self._delete_video_asset,
            self._delete_likes,
            self._delete_comments,
        ]

    # -------------------- Listing --------------------

    def build_list_pipeline(self, options: VideoListOptions) -> List[Dict[str, Any]]:
        pipeline: List[Dict[str, Any]] = []

        if options.query:
            pipeline.append({
                "$search": {
                    "index": self.search_index,
                    "text": {
                        "query": options.query,
                        "path": ["title", "description"],
                    },
                }
            })

        if options.user_id:
            pipeline.append({"$match": {"owner": objid(options.user_id, "userId")}})

        pipeline.append({"$match": {"isPublished": True}})

        if options.sort_by and options.sort_type:
            direction = 1 if options.sort_type == "asc" else -1
            pipeline.append({"$sort": {options.sort_by: direction}})
        else:
            pipeline.append({"$sort": {"createdAt": -1}})

        pipeline.extend([
            {
                "$lookup": {
                    "from": USERS,
                    "localField": "owner",
                    "foreignField": "_id",
                    "as": "ownerDetails",
                    "pipeline": [{"$project": {"username": 1, "avatar.url": 1}}],
                }
            },
            {"$unwind": "$ownerDetails"},
        ])
        return pipeline

    def list_videos(self, options: VideoListOptions) -> Dict[str, Any]:
        pipeline = self.build_list_pipeline(options)
        return aggregate_paginate(self.db, VIDEOS, pipeline, page=options.page, limit=options.limit)

    # -------------------- Ingestion --------------------

    def publish_video(
        self,
        user_id: str,
        title: Optional[str],
        description: Optional[str],
        video_file_path: Optional[str],
        thumbnail_path: Optional[str],
    ) -> Dict[str, Any]:
        owner = objid(user_id, "userId")
        if _blank(title) or _blank(description):
            raise ValidationError("All fields are required")
        if not video_file_path:
            raise ValidationError("Video file is required")
        if not thumbnail_path:
            raise ValidationError("Thumbnail is required")

        # An uploaded video file is left in place if the thumbnail fails.
        video_file = self.storage.upload(video_file_path, probe=True)
        if not video_file:
            raise UploadError("Video file upload failed")
        thumbnail = self.storage.upload(thumbnail_path)
        if not thumbnail:
            raise UploadError("Thumbnail upload failed")

        video = Video(
            title=title,
            description=description,
            duration=video_file.get("duration") or 0,
            videoFile=MediaAsset(url=video_file["url"], public_id=video_file["public_id"]),
            thumbnail=MediaAsset(url=thumbnail["url"], public_id=thumbnail["public_id"]),
            owner=str(owner),
            isPublished=False,
        )
        inserted_id = create_document(self.db, VIDEOS, video.to_document())

        created = self.db[VIDEOS].find_one({"_id": inserted_id})
        if not created:
            raise InternalError("Video upload failed")

        logger.info(f"Video {inserted_id} published by user {owner}")
        return created

    # -------------------- Detail --------------------

    def build_detail_pipeline(self, video_id: ObjectId, user_id: ObjectId) -> List[Dict[str, Any]]:
        return [
            {"$match": {"_id": video_id}},
            {
                "$lookup": {
                    "from": LIKES,
                    "localField": "_id",
                    "foreignField": "video",
                    "as": "likes",
                }
            },
            {
                "$lookup": {
                    "from": USERS,
                    "localField": "owner",
                    "foreignField": "_id",
                    "as": "owner",
                    "pipeline": [
                        {
                            "$lookup": {
                                "from": SUBSCRIPTIONS,
                                "localField": "_id",
                                "foreignField": "channel",
                                "as": "subscribers",
                            }
                        },
                        {
                            "$addFields": {
                                "subscribersCount": {"$size": "$subscribers"},
                                "isSubscribed": {
                                    "$cond": {
                                        "if": {"$in": [user_id, "$subscribers.subscriber"]},
                                        "then": True,
                                        "else": False,
                                    }
                                },
                            }
                        },
                        {
                            "$project": {
                                "username": 1,
                                "avatar.url": 1,
                                "subscribersCount": 1,
                                "isSubscribed": 1,
                            }
                        },
                    ],
                }
            },
            {
                "$addFields": {
                    "likesCount": {"$size": "$likes"},
                    "owner": {"$first": "$owner"},
                    "isLiked": {
                        "$cond": {
                            "if": {"$in": [user_id, "$likes.likedBy"]},
                            "then": True,
                            "else": False,
                        }
                    },
                }
            },
            {
                "$project": {
                    "videoFile.url": 1,
                    "title": 1,
                    "description": 1,
                    "views": 1,
                    "createdAt": 1,
                    "duration": 1,
                    "comments": 1,
                    "owner": 1,
                    "likesCount": 1,
                    "isLiked": 1,
                }
            },
        ]

    def get_video(self, video_id: str, user_id: str) -> Dict[str, Any]:
        vid = objid(video_id, "videoId")
        uid = objid(user_id, "userId")

        result = list(self.db[VIDEOS].aggregate(self.build_detail_pipeline(vid, uid)))
        if not result:
            raise NotFoundError("Video not found")

        # Not atomic with the read above; the returned view count predates this.
        self.db[VIDEOS].update_one({"_id": vid}, {"$inc": {"views": 1}})
        self.db[USERS].update_one({"_id": uid}, {"$addToSet": {"watchHistory": vid}})
        return result[0]

    # -------------------- Mutation --------------------

    def _get_owned_video(self, video_id: ObjectId, user_id: str, missing_status: int = 404) -> Dict[str, Any]:
        video = self.db[VIDEOS].find_one({"_id": video_id})
        if not video:
            raise NotFoundError("Video not found", status_code=missing_status)
        if video.get("owner") != objid(user_id, "userId"):
            logger.warning(f"User {user_id} is not the owner of video {video_id}")
            raise ForbiddenError("You are not authorized to modify this video")
        return video

    def update_video(
        self,
        video_id: str,
        user_id: str,
        title: Optional[str],
        description: Optional[str],
        thumbnail_path: Optional[str],
    ) -> Dict[str, Any]:
        vid = objid(video_id, "videoId")
        if _blank(title) or _blank(description):
            raise ValidationError("Title and description are required")

        video = self._get_owned_video(vid, user_id, missing_status=400)
        old_thumbnail = (video.get("thumbnail") or {}).get("public_id")

        if not thumbnail_path:
            raise ValidationError("Thumbnail is required")
        thumbnail = self.storage.upload(thumbnail_path)
        if not thumbnail:
            raise UploadError("Thumbnail upload failed")

        updated = self.db[VIDEOS].find_one_and_update(
            {"_id": vid},
            {
                "$set": {
                    "title": title,
                    "description": description,
                    "thumbnail": {"public_id": thumbnail["public_id"], "url": thumbnail["url"]},
                    "updatedAt": datetime.utcnow(),
                }
            },
            return_document=ReturnDocument.AFTER,
        )
        if not updated:
            raise InternalError("Failed to update video")

        # Only drop the old asset once the document points at the new one.
        if old_thumbnail and not self.storage.delete(old_thumbnail):
            logger.warning(f"Old thumbnail {old_thumbnail} of video {vid} was not deleted")

        logger.info(f"Video {vid} updated by user {user_id}")
        return updated

    def delete_video(self, video_id: str, user_id: str) -> None:
        vid = objid(video_id, "videoId")
        video = self._get_owned_video(vid, user_id, missing_status=400)

        result = self.db[VIDEOS].delete_one({"_id": vid})
        if not result.deleted_count:
            raise InternalError("Failed to delete video")

        for cleanup in self.on_delete:
            cleanup(video)

        logger.info(f"Video {vid} deleted by user {user_id}")

    def _delete_asset(self, video: Dict[str, Any], field: str) -> None:
        public_id = (video.get(field) or {}).get("public_id")
        if public_id and not self.storage.delete(public_id):
            logger.warning(f"Asset {public_id} of deleted video {video['_id']} was not removed")

    def _delete_thumbnail_asset(self, video: Dict[str, Any]) -> None:
        self._delete_asset(video, "thumbnail")

    def _delete_video_asset(self, video: Dict[str, Any]) -> None:
        self._delete_asset(video, "videoFile")

    def _delete_likes(self, video: Dict[str, Any]) -> None:
        self.db[LIKES].delete_many({"video": video["_id"]})

    def _delete_comments(self, video: Dict[str, Any]) -> None:
        self.db[COMMENTS].delete_many({"video": video["_id"]})

    # -------------------- Publish toggle --------------------

    def toggle_publish_status(self, video_id: str, user_id: str) -> PublishStatus:
        vid = objid(video_id, "videoId")
        video = self._get_owned_video(vid, user_id)

        toggled = self.db[VIDEOS].find_one_and_update(
            {"_id": vid},
            {"$set": {"isPublished": not video.get("isPublished", False), "updatedAt": datetime.utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        if not toggled:
            raise InternalError("Failed to toggle video publish status")

        logger.info(f"Video {vid} publish status set to {toggled['isPublished']}")
        return PublishStatus(isPublished=toggled["isPublished"])
