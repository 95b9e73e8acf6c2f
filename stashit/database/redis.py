"""
Redis 연결 설정 및 관리

토큰 블랙리스트 조회와 온라인 상태 미러링을 위한 Redis 연결을 제공합니다.
"""

import asyncio
from typing import Optional
import redis.asyncio as redis
from redis.asyncio import ConnectionPool
from redis.exceptions import ConnectionError

from stashit.core.config import settings
from stashit.core.logging import get_logger

logger = get_logger(__name__)

# Redis 연결 인스턴스들
redis_client: Optional[redis.Redis] = None
redis_pool: Optional[ConnectionPool] = None

TOKEN_BLACKLIST_KEY = "blacklist:{token}"


async def create_redis_pool() -> ConnectionPool:
    """Redis 연결 풀 생성"""
    try:
        pool = ConnectionPool.from_url(
            settings.redis_url,
            max_connections=settings.redis_max_connections,
            retry_on_timeout=True,
            decode_responses=True,  # 자동으로 bytes를 string으로 디코딩
            encoding='utf-8'
        )

        logger.info(f"Redis connection pool created with max {settings.redis_max_connections} connections")
        return pool

    except Exception as e:
        logger.error(f"Failed to create Redis connection pool: {e}")
        raise


async def init_redis():
    """Redis 연결 초기화"""
    global redis_client, redis_pool

    try:
        redis_pool = await create_redis_pool()
        redis_client = redis.Redis(connection_pool=redis_pool)

        # 연결 테스트
        await redis_client.ping()

        logger.info("Redis connection initialized successfully")

    except ConnectionError as e:
        logger.error(f"Redis connection failed: {e}")
        raise
    except Exception as e:
        logger.error(f"Redis initialization failed: {e}")
        raise


async def close_redis():
    """Redis 연결 종료"""
    global redis_client, redis_pool

    try:
        if redis_client:
            await redis_client.aclose()
            logger.info("Redis client closed")

        if redis_pool:
            await redis_pool.aclose()
            logger.info("Redis connection pool closed")

    except Exception as e:
        logger.error(f"Error closing Redis connections: {e}")
    finally:
        redis_client = None
        redis_pool = None


async def get_redis() -> redis.Redis:
    """Redis 클라이언트 인스턴스 반환"""
    global redis_client

    if redis_client is None:
        await init_redis()

    return redis_client


# =============================================================================
# 토큰 블랙리스트
# =============================================================================

async def is_token_blacklisted(token: str) -> bool:
    """
    로그아웃 등으로 무효화된 토큰인지 확인

    auth-service가 `blacklist:<token>` 키를 토큰 만료 시각까지 기록합니다.
    Redis 장애 시에는 허용합니다 (fail-open).
    """
    try:
        client = await get_redis()
        return bool(await client.exists(TOKEN_BLACKLIST_KEY.format(token=token)))
    except Exception as e:
        logger.error(f"Failed to check token blacklist: {e}")
        return False


# =============================================================================
# Redis 상태 확인 함수들
# =============================================================================

async def health_check() -> dict:
    """Redis 헬스 체크"""
    try:
        client = await get_redis()

        # 연결 테스트
        start_time = asyncio.get_running_loop().time()
        await client.ping()
        ping_time = (asyncio.get_running_loop().time() - start_time) * 1000

        return {
            "status": "healthy",
            "ping_ms": round(ping_time, 2)
        }

    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return {
            "status": "unhealthy",
            "error": str(e)
        }
