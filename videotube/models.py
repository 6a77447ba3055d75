from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Any
from pydantic import BaseModel, Field, ConfigDict
from pydantic_core import core_schema
from bson import ObjectId
from bson.errors import InvalidId

from videotube.errors import InvalidArgument


USERS = "users"
VIDEOS = "videos"
COMMENTS = "comments"
LIKES = "likes"
SUBSCRIPTIONS = "subscriptions"
PLAYLISTS = "playlists"


class PyObjectId(str):
    """Custom type for MongoDB ObjectId that works with Pydantic v2"""

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler
    ) -> core_schema.CoreSchema:
        return core_schema.union_schema([
            core_schema.is_instance_schema(ObjectId),
            core_schema.chain_schema([
                core_schema.str_schema(),
                core_schema.no_info_plain_validator_function(cls.validate),
            ])
        ],
        serialization=core_schema.plain_serializer_function_ser_schema(
            lambda x: str(x),
            when_used="json"
        ))

    @classmethod
    def validate(cls, v):
        if isinstance(v, ObjectId):
            return v
        if isinstance(v, str) and ObjectId.is_valid(v):
            return ObjectId(v)
        raise ValueError("Invalid ObjectId")


def ensure_object_id(value: Any, name: str = "id") -> ObjectId:
    """Coerce a raw identifier into an ObjectId or raise InvalidArgument"""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        try:
            return ObjectId(value)
        except InvalidId:
            pass
    raise InvalidArgument(f"Invalid {name}")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LikeTarget(str, Enum):
    """Which arm of the polymorphic like target a Like points at"""
    VIDEO = "video"
    COMMENT = "comment"


class MediaRef(BaseModel):
    url: str
    public_id: str


class UserInDB(BaseModel):
    """Database model for users - NOT used for API responses"""
    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    username: str
    full_name: Optional[str] = None
    avatar: Optional[MediaRef] = None
    watch_history: List[PyObjectId] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class VideoInDB(BaseModel):
    """Database model for videos - NOT used for API responses"""
    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    owner: PyObjectId
    title: str
    description: str
    video_file: MediaRef
    thumbnail: MediaRef
    duration: Optional[float] = None
    views: int = 0
    is_published: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class CommentInDB(BaseModel):
    """Database model for comments - NOT used for API responses"""
    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    owner: PyObjectId
    video: PyObjectId
    content: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class LikeInDB(BaseModel):
    """Database model for likes. Exactly one target, tagged by target_kind"""
    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        use_enum_values=True,
    )

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    liked_by: PyObjectId
    target_kind: LikeTarget
    target_id: PyObjectId
    created_at: datetime = Field(default_factory=utcnow)


class SubscriptionInDB(BaseModel):
    """Database model for subscriptions"""
    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    subscriber: PyObjectId
    channel: PyObjectId
    created_at: datetime = Field(default_factory=utcnow)


class PlaylistInDB(BaseModel):
    """Database model for playlists. Video refs keep insertion order and may repeat"""
    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    owner: PyObjectId
    name: str
    description: str
    videos: List[PyObjectId] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


def to_document(model: BaseModel) -> dict:
    """Dump an InDB model into a store document, keeping ObjectIds typed"""
    doc = model.model_dump(by_alias=True, exclude_none=False)
    if doc.get("_id") is None:
        doc.pop("_id", None)
    return doc
