from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
from videotube.config import settings


def get_client_ip(request: Request) -> str:
    """
    Get client IP address from request, checking for proxy headers
    """
    # Check for common proxy headers
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For can contain multiple IPs, get the first one (client IP)
        return forwarded_for.split(",")[0].strip()
    
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    
    # Fallback to direct connection IP
    return get_remote_address(request)


# Initialize rate limiter
limiter = Limiter(
    key_func=get_client_ip,
    default_limits=["200 per minute"],
    storage_uri="memory://",
    headers_enabled=True,
    enabled=settings.RATE_LIMIT_ENABLED,
)

# STRICT: Video upload (5 per hour per IP)
RATE_LIMIT_VIDEO_UPLOAD = "5 per hour"

# STRICT: Comment creation (20 per hour per IP to prevent spam)
RATE_LIMIT_COMMENT_CREATE = "20 per hour"

# MODERATE: Likes and subscriptions (toggles)
RATE_LIMIT_INTERACTION = "100 per hour"

# MODERATE: Edits and deletions of owned content
RATE_LIMIT_WRITE = "60 per hour"

# GENEROUS: Read operations (500 per hour per IP)
RATE_LIMIT_READ = "500 per hour"
