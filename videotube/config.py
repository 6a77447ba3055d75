from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # Document store
    STORE_BACKEND: str = "mongo"  # mongo, memory
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "videotube_db"
    STORE_TIMEOUT_MS: int = 5000  # Server selection and socket timeout for every store call
    VIDEO_SEARCH_INDEX: str = "search-videos"
    
    # JWT
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    
    # Cloudflare R2
    R2_ENDPOINT_URL: str = ""
    R2_ACCESS_KEY_ID: str = ""
    R2_SECRET_ACCESS_KEY: str = ""
    R2_BUCKET_NAME: str = ""
    R2_PUBLIC_URL: str = ""
    MAX_CONCURRENT_S3_OPS: int = 10
    
    # Application
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100
    MAX_VIDEO_SIZE_MB: int = 200
    ALLOWED_VIDEO_TYPES: str = "video/mp4,video/mpeg,video/quicktime,video/x-msvideo,video/webm"
    ALLOWED_IMAGE_TYPES: str = "image/jpeg,image/png,image/webp"
    
    # Background writes (view counter, watch history, media cleanup)
    MAX_CONCURRENT_SIDE_EFFECTS: int = 8
    
    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    
    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    
    @property
    def allowed_video_types_list(self) -> List[str]:
        return [t.strip() for t in self.ALLOWED_VIDEO_TYPES.split(",")]
    
    @property
    def allowed_image_types_list(self) -> List[str]:
        return [t.strip() for t in self.ALLOWED_IMAGE_TYPES.split(",")]
    
    @property
    def max_video_size_bytes(self) -> int:
        return self.MAX_VIDEO_SIZE_MB * 1024 * 1024
    
    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
