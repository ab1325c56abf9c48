"""
Admin / Event API Endpoints

職責：
1. 查詢與轉移管理員
2. 列出事件（給前端 / 外部索引）
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional
import logging

from database import get_db
from schemas import AdminResponse, TransferAdminRequest, EventListResponse, EventResponse
from core.access_guard import AccessGuard
from core.exceptions import PotGameException
from services.event_service import list_events, EVENT_TYPES
from api.dependencies import get_caller, get_access_guard, to_http_exception

router = APIRouter(prefix="/api", tags=["admin"])
logger = logging.getLogger(__name__)


@router.get("/admin", response_model=AdminResponse)
def get_admin(guard: AccessGuard = Depends(get_access_guard), db: Session = Depends(get_db)):
    try:
        return AdminResponse(admin=guard.admin_identity(db))
    except Exception as e:
        logger.error(f"Failed to get admin: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/admin/transfer", response_model=AdminResponse)
def transfer_admin(
    payload: TransferAdminRequest,
    caller: Optional[str] = Depends(get_caller),
    guard: AccessGuard = Depends(get_access_guard),
    db: Session = Depends(get_db)
):
    """
    轉移管理員權限（Admin endpoint）

    前置條件：
    - 呼叫者是現任管理員
    - new_admin 不可為空
    """
    try:
        new_admin = guard.transfer(db, payload.new_admin, caller)
        return AdminResponse(admin=new_admin)

    except PotGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to transfer admin: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/events", response_model=EventListResponse)
def get_events(
    limit: int = Query(50, ge=1, le=500),
    event_type: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """
    取得最近的事件（新的在前）

    參數：
        limit: 最多幾筆
        event_type: BET_PLACED / PRIZE_CLAIMED / ROUND_STARTED / ADMIN_TRANSFERRED
    """
    if event_type is not None and event_type not in EVENT_TYPES:
        raise HTTPException(status_code=422, detail=f"Unknown event_type {event_type}")

    try:
        events = list_events(db, limit=limit, event_type=event_type)
        return EventListResponse(events=[EventResponse(**event) for event in events])
    except Exception as e:
        logger.error(f"Failed to list events: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
