"""Redis-backed rate limiter."""
import logging
import time
from typing import Optional, Tuple
import redis
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from auth import TOKEN_INDEX
from monitoring import rate_limit_exceeded_counter, suspicious_activity_counter

logger = logging.getLogger(__name__)

# (pattern name, status predicate, threshold within SUSPICIOUS_WINDOW_SECONDS)
SUSPICIOUS_PATTERNS = (
    ("credential_stuffing", lambda status: status == 401, 5),
    ("endpoint_scanning", lambda status: status == 404, 10),
    ("abuse", lambda status: 400 <= status < 500, 20),
)
SUSPICIOUS_WINDOW_SECONDS = 300


class RedisRateLimiter(BaseHTTPMiddleware):
    """
    Sliding-window rate limiter shared across service instances through Redis.

    Two tiers are checked on every request:
    - Per IP: high limit, many shoppers can share one address
    - Per user: lower limit for authenticated callers

    Redis failures fail open: the request is served and the error is logged.
    """

    def __init__(
        self,
        app,
        redis_client: redis.Redis,
        requests_per_minute_ip: int = 50000,
        requests_per_minute_user: int = 500,
        window_seconds: int = 60
    ):
        """
        Initialize Redis-backed rate limiter.

        Args:
            app: FastAPI application
            redis_client: Redis connection
            requests_per_minute_ip: Max requests per IP per window
            requests_per_minute_user: Max requests per user per window
            window_seconds: Sliding window size in seconds
        """
        super().__init__(app)
        self.redis = redis_client
        self.requests_per_minute_ip = requests_per_minute_ip
        self.requests_per_minute_user = requests_per_minute_user
        self.window_seconds = window_seconds

    def _check_rate_limit(self, key: str, limit: int, window: int) -> Tuple[bool, int]:
        """
        Record a hit in a Redis sorted set and test it against the limit.

        Returns:
            Tuple of (is_allowed, current_count)
        """
        try:
            current_time = time.time()

            pipe = self.redis.pipeline()
            pipe.zremrangebyscore(key, 0, current_time - window)
            pipe.zcard(key)
            pipe.zadd(key, {str(current_time): current_time})
            pipe.expire(key, window + 1)
            results = pipe.execute()

            # Count BEFORE adding current request
            count = results[1]
            return count < limit, count + 1

        except redis.RedisError as e:
            logger.error(f"Redis rate limit error: {e}")
            return True, 0

    @staticmethod
    def _client_ip(request: Request) -> str:
        if "x-forwarded-for" in request.headers:
            return request.headers["x-forwarded-for"].split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    @staticmethod
    def _user_id(request: Request) -> Optional[str]:
        auth_header = request.headers.get("authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return None
        credentials = TOKEN_INDEX.get(auth_header.split(" ", 1)[1].strip())
        return credentials["user_id"] if credentials else None

    def _reject(self, limit_type: str, subject: str, count: int, limit: int) -> JSONResponse:
        rate_limit_exceeded_counter.add(1, {"limit_type": limit_type})
        logger.warning(f"Rate limit exceeded for {limit_type} {subject}", extra={
            "limit_type": limit_type,
            "requests_in_window": count,
            "limit": limit
        })
        return JSONResponse(
            status_code=429,
            content={"detail": f"Rate limit exceeded for {limit_type}. Maximum {limit} requests per minute."},
            headers={"Retry-After": str(self.window_seconds)}
        )

    async def dispatch(self, request: Request, call_next):
        """Apply IP then user limits, serve the request, then watch for abuse."""
        client_ip = self._client_ip(request)
        user_id = self._user_id(request)

        allowed, count = self._check_rate_limit(
            f"rate:ip:{client_ip}", self.requests_per_minute_ip, self.window_seconds
        )
        if not allowed:
            return self._reject("ip", client_ip, count, self.requests_per_minute_ip)

        if user_id:
            allowed, count = self._check_rate_limit(
                f"rate:user:{user_id}", self.requests_per_minute_user, self.window_seconds
            )
            if not allowed:
                return self._reject("user", user_id, count, self.requests_per_minute_user)

        response = await call_next(request)

        self._detect_suspicious_activity(response.status_code, client_ip)

        return response

    def _detect_suspicious_activity(self, status_code: int, client_ip: str) -> None:
        """Count error responses per IP and flag known abuse patterns."""
        try:
            current_time = time.time()
            for pattern, matches, threshold in SUSPICIOUS_PATTERNS:
                if not matches(status_code):
                    continue
                key = f"suspicious:{pattern}:{client_ip}"
                self.redis.zadd(key, {str(current_time): current_time})
                self.redis.expire(key, SUSPICIOUS_WINDOW_SECONDS + 1)

                count = self.redis.zcount(key, current_time - SUSPICIOUS_WINDOW_SECONDS, current_time)
                if count >= threshold:
                    suspicious_activity_counter.add(1, {"type": pattern})
                    logger.warning(f"Suspicious activity: {pattern} from {client_ip}", extra={
                        "client_ip": client_ip,
                        "pattern": pattern,
                        "count": count
                    })

        except redis.RedisError as e:
            logger.error(f"Error detecting suspicious activity: {e}")
