"""
API 共用的 FastAPI dependencies 與錯誤轉換

呼叫者身分由 `X-Identity` header 帶入（認證機制不在這個服務的範圍內）
"""
from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session
from typing import Optional

from database import get_db, get_settings
from core.round_ledger import RoundLedger
from core.access_guard import AccessGuard
from core.exceptions import (
    PotGameException,
    MissingIdentity,
    Unauthorized,
    InvalidParameter,
    RoundNotActive,
    RoundStillActive,
    PrizeFundEmpty,
    PrizeFundNotEmpty,
    InsufficientBalance,
    InsufficientAuthorization,
    TransferFailed
)
from services.clock_service import system_clock
from services.ledger_service import SqlValueLedger

# 順序很重要：子類別要排在父類別前面
ERROR_STATUS_CODES = (
    (MissingIdentity, 401),
    (Unauthorized, 403),
    (InvalidParameter, 422),
    (RoundNotActive, 409),
    (RoundStillActive, 409),
    (PrizeFundEmpty, 409),
    (PrizeFundNotEmpty, 409),
    (InsufficientBalance, 402),
    (InsufficientAuthorization, 402),
    (TransferFailed, 502),
)


def to_http_exception(exc: PotGameException) -> HTTPException:
    """把業務異常轉成 HTTPException，detail 保留原始訊息"""
    status_code = 400
    for exc_type, code in ERROR_STATUS_CODES:
        if isinstance(exc, exc_type):
            status_code = code
            break

    detail = {"error": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, InvalidParameter):
        detail["field"] = exc.field
    return HTTPException(status_code=status_code, detail=detail)


def get_clock():
    return system_clock


def get_caller(x_identity: Optional[str] = Header(None)) -> Optional[str]:
    if x_identity is None:
        return None
    return x_identity.strip() or None


def get_ledger(db: Session = Depends(get_db)) -> SqlValueLedger:
    return SqlValueLedger(db)


def get_access_guard(clock=Depends(get_clock)) -> AccessGuard:
    return AccessGuard(clock=clock)


def get_round_ledger(
    ledger: SqlValueLedger = Depends(get_ledger),
    settings=Depends(get_settings),
    clock=Depends(get_clock),
) -> RoundLedger:
    return RoundLedger.from_settings(ledger, settings, clock=clock)
