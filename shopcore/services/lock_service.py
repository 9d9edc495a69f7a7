import redis
from shopcore.utils.settings import REDIS_URL
from shopcore.utils.logging import get_logger
from shopcore.utils.retry import redis_retry

logger = get_logger(__name__)

#compare-and-delete in one Lua call, so a lease that already expired
#and was taken by another worker is never deleted by the old owner
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


class LockService:
    """
    Short leases for periodic tasks so overlapping beat ticks skip work
    another worker is already doing. Correctness never depends on them:
    every mutation underneath is a conditional update.
    """

    def __init__(self, url: str | None = None):
        self.redis = redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @redis_retry()
    def acquire_task_lock(self, name: str, owner: str, ttl: int) -> bool:
        key = f"task:{name}:lock"
        logger.info(f"Acquire lock {key} for {owner}")
        #SET task:<name>:lock <owner> NX EX <ttl>
        return bool(self.redis.set(name=key, value=owner, nx=True, ex=ttl))

    @redis_retry()
    def release_task_lock(self, name: str, owner: str) -> bool:
        key = f"task:{name}:lock"
        logger.info(f"Release lock {key} for {owner}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, owner)
        return bool(res)
