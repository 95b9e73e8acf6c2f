"""
온라인 상태 관리 서비스

프로세스 내 ConnectionRegistry의 온라인/오프라인 전이를 Redis에 미러링합니다.
다른 서비스(user-service 등)가 참고하는 보조 정보이며, 실패해도 실시간 처리는 계속됩니다.
"""

import json
from datetime import datetime
from typing import Optional

from stashit.core.config import settings
from stashit.core.logging import get_logger
from stashit.database.redis import get_redis

logger = get_logger(__name__)

# Redis 키 패턴
USER_ONLINE_KEY = "user:online:{user_id}"
USER_LAST_SEEN_KEY = "user:last_seen:{user_id}"
USER_STATUS_CHANNEL = "user:status:{user_id}"
ONLINE_USERS_SET = "online_users"

LAST_SEEN_TTL = 86400 * 7  # 7일 (마지막 접속 시간 보관)


class OnlineStatusService:
    """온라인 상태 관리 서비스"""

    @staticmethod
    async def set_online(user_id: str, session_id: Optional[str] = None) -> bool:
        """
        사용자를 온라인 상태로 설정

        Args:
            user_id: 사용자 ID
            session_id: 세션 ID (WebSocket 연결 ID)

        Returns:
            성공 여부
        """
        try:
            redis = await get_redis()
            current_time = datetime.utcnow().isoformat()

            # 파이프라인을 사용한 원자적 연산
            pipe = redis.pipeline()

            online_data = {
                "user_id": user_id,
                "status": "online",
                "last_activity": current_time,
                "session_id": session_id
            }
            pipe.setex(
                USER_ONLINE_KEY.format(user_id=user_id),
                settings.presence_ttl_seconds,
                json.dumps(online_data)
            )
            pipe.sadd(ONLINE_USERS_SET, user_id)
            pipe.setex(
                USER_LAST_SEEN_KEY.format(user_id=user_id),
                LAST_SEEN_TTL,
                current_time
            )
            await pipe.execute()

            # Redis Pub/Sub으로 상태 변화 브로드캐스트
            await redis.publish(
                USER_STATUS_CHANNEL.format(user_id=user_id),
                json.dumps({
                    "user_id": user_id,
                    "is_online": True,
                    "timestamp": current_time
                })
            )

            logger.info(f"User {user_id} set to online status", extra={
                "session_id": session_id,
                "event_type": "user_online"
            })
            return True

        except Exception as e:
            logger.error(f"Failed to set user {user_id} online: {e}")
            return False

    @staticmethod
    async def set_offline(user_id: str) -> bool:
        """
        사용자를 오프라인 상태로 설정

        Args:
            user_id: 사용자 ID

        Returns:
            성공 여부
        """
        try:
            redis = await get_redis()
            current_time = datetime.utcnow().isoformat()

            pipe = redis.pipeline()
            pipe.delete(USER_ONLINE_KEY.format(user_id=user_id))
            pipe.srem(ONLINE_USERS_SET, user_id)
            pipe.setex(
                USER_LAST_SEEN_KEY.format(user_id=user_id),
                LAST_SEEN_TTL,
                current_time
            )
            await pipe.execute()

            await redis.publish(
                USER_STATUS_CHANNEL.format(user_id=user_id),
                json.dumps({
                    "user_id": user_id,
                    "is_online": False,
                    "last_seen": current_time,
                    "timestamp": current_time
                })
            )

            logger.info(f"User {user_id} set to offline status", extra={
                "event_type": "user_offline"
            })
            return True

        except Exception as e:
            logger.error(f"Failed to set user {user_id} offline: {e}")
            return False


online_status_service = OnlineStatusService()
