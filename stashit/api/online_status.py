"""
온라인 상태 조회 API

현재 프로세스에 연결된 사용자 목록을 제공합니다.
"""

from typing import Dict

from fastapi import APIRouter, Depends, Request

from stashit.utils.auth import get_current_user_id

router = APIRouter(tags=["Online Status"])


@router.get("/online")
async def get_online_users(
        request: Request,
        current_user_id: str = Depends(get_current_user_id)
) -> Dict:
    """
    온라인 사용자 목록 조회

    Returns:
        {"onlineUsers": [...], "count": N}
    """
    registry = request.app.state.chat_server.registry
    online_users = sorted(registry.list_online())

    return {
        "onlineUsers": online_users,
        "count": len(online_users)
    }
