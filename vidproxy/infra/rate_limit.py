from fastapi import HTTPException, Request
from vidproxy.infra.redis import get_redis
from vidproxy.config.settings import RateLimitConfig, config
from vidproxy.utils.locale import get_locale
from vidproxy.i18n import i18n


class RedisRateLimiter:
    """Redis-based fixed-window rate limiter with Lua script"""

    def __init__(self, settings: RateLimitConfig):
        self.settings = settings

        self.lua_script = """
        local key = KEYS[1]
        local limit = tonumber(ARGV[1])
        local window = tonumber(ARGV[2])

        local current = redis.call('INCR', key)
        if current == 1 then
            redis.call('EXPIRE', key, window)
        end

        if current > limit then
            local ttl = redis.call('TTL', key)
            return {0, ttl}
        end

        return {1, 0}
        """

    async def __call__(self, request: Request):
        if not self.settings.enabled:
            return True

        redis = get_redis()
        if not redis:
            return True

        client_ip = request.client.host if request.client else "unknown"
        if client_ip in self.settings.whitelist:
            return True

        key = f"rate:{client_ip}:{request.url.path}"

        try:
            allowed, ttl = await redis.eval(
                self.lua_script,
                1,
                key,
                self.settings.max_requests,
                self.settings.window_seconds
            )
        except Exception:
            # Redis trouble never blocks downloads
            return True

        if not allowed:
            locale = get_locale(request.headers.get("accept-language"))
            _ = i18n.for_locale(locale)
            raise HTTPException(
                status_code=429,
                detail=_("error.rate_limit", seconds=ttl),
                headers={"Retry-After": str(ttl)}
            )

        return True


rate_limiter = RedisRateLimiter(config.rate_limit)
