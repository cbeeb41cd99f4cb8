import redis.asyncio as redis
from lumina.core.config import settings

redis_client = redis.from_url(
    settings.REDIS_URL,
    encoding="utf-8",
    decode_responses=True
)

async def get_redis():
    return redis_client

# ── Analysis Lock (one analysis per video at a time) ───────────────────────

ANALYZE_LOCK_PREFIX = "lock:analyze:"

# Release only if we still own the lock; a lock that expired and was
# re-acquired by another request must not be deleted.
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""

async def acquire_analysis_lock(video_id: str, token: str, ttl_seconds: int) -> bool:
    """
    Try to take the analysis lock for a video.
    Returns True if acquired, False if another analysis holds it.
    """
    r = await get_redis()
    acquired = await r.set(f"{ANALYZE_LOCK_PREFIX}{video_id}", token, nx=True, ex=ttl_seconds)
    return bool(acquired)

async def release_analysis_lock(video_id: str, token: str) -> bool:
    """Release the analysis lock if `token` still owns it."""
    r = await get_redis()
    result = await r.eval(_RELEASE_LUA, 1, f"{ANALYZE_LOCK_PREFIX}{video_id}", token)
    return bool(result)
