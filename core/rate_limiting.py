"""
Redis-backed rate limiting for public endpoints such as checkout.

Each (view, client IP) pair gets a fixed-window counter. The Redis
client is created on first use, so processes with rate limiting
disabled never open a connection. Redis errors fail open.
"""
import logging
from functools import wraps
from typing import Optional, Tuple

import redis
from django.conf import settings
from rest_framework import status
from rest_framework.response import Response

logger = logging.getLogger(__name__)

_redis_client = None
_redis_checked = False


def get_redis_client() -> Optional[redis.Redis]:
    """Return a connected client, or None when Redis is unreachable."""
    global _redis_client, _redis_checked
    if not _redis_checked:
        _redis_checked = True
        try:
            client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True,
                                          socket_connect_timeout=5)
            client.ping()
            _redis_client = client
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.warning(f"Redis unavailable ({e}); requests will not be rate limited")
    return _redis_client


def get_client_ip(request) -> str:
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR', 'unknown')


def count_hit(client: redis.Redis, key: str, window_seconds: int) -> Tuple[int, int]:
    """Register one request under ``key``; returns (count in window, seconds left)."""
    count = client.incr(key)
    if count == 1:
        client.expire(key, window_seconds)
    return count, client.ttl(key)


def _limit_headers(max_requests: int, remaining: int, ttl: int) -> dict:
    return {
        'X-RateLimit-Limit': str(max_requests),
        'X-RateLimit-Remaining': str(max(0, remaining)),
        'X-RateLimit-Reset': str(ttl),
    }


def rate_limit(max_requests: int = 20, window_seconds: int = 60):
    """
    Limit a DRF view method to ``max_requests`` per client per window.

    Usage:
        @rate_limit(10, 60)
        def post(self, request):
            ...
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(self, request, *args, **kwargs):
            client = get_redis_client() if settings.RATE_LIMIT_ENABLED else None
            if client is None:
                return view_func(self, request, *args, **kwargs)

            key = f"rate_limit:{type(self).__name__}.{view_func.__name__}:{get_client_ip(request)}"
            try:
                count, ttl = count_hit(client, key, window_seconds)
            except redis.RedisError as e:
                logger.error(f"Rate limit check failed for {key}: {e}")
                return view_func(self, request, *args, **kwargs)

            if count > max_requests:
                logger.warning(f"Rate limit exceeded for {key} ({count}/{max_requests})")
                headers = _limit_headers(max_requests, 0, ttl)
                headers['Retry-After'] = str(ttl)
                return Response(
                    {
                        'error': 'Rate limit exceeded',
                        'detail': f'Maximum {max_requests} requests per {window_seconds} seconds allowed.',
                        'retry_after': ttl,
                    },
                    status=status.HTTP_429_TOO_MANY_REQUESTS,
                    headers=headers,
                )

            response = view_func(self, request, *args, **kwargs)
            for header, value in _limit_headers(max_requests, max_requests - count, ttl).items():
                response[header] = value
            return response

        return wrapper
    return decorator
