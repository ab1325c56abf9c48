"""
Ledger API Endpoints（內建 SQL 帳本）

只有在使用內建 SqlValueLedger 時才有意義；
接外部帳本的部署，餘額與授權由外部系統管理

職責：
1. 查詢餘額與授權給 custody 的額度
2. 授權 custody 拉取下注金額
3. 管理員發行（mint）測試用餘額
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
import logging

from database import get_db, get_settings, transactional
from schemas import LedgerAccountResponse, ApproveRequest, MintRequest
from core.access_guard import AccessGuard
from core.locks import serialized
from core.exceptions import PotGameException, MissingIdentity
from services.ledger_service import SqlValueLedger, LedgerError
from api.dependencies import get_caller, get_ledger, get_access_guard, to_http_exception

router = APIRouter(prefix="/api/ledger", tags=["ledger"])
logger = logging.getLogger(__name__)


@serialized
@transactional
def _approve(db: Session, ledger: SqlValueLedger, owner: str, spender: str, amount: int) -> int:
    return ledger.approve(owner, spender, amount)


@serialized
@transactional
def _credit(db: Session, ledger: SqlValueLedger, identity: str, amount: int) -> int:
    return ledger.credit(identity, amount)


def _account_response(ledger: SqlValueLedger, identity: str, custody: str) -> LedgerAccountResponse:
    return LedgerAccountResponse(
        identity=identity,
        balance=ledger.available_balance(identity),
        allowance=ledger.spend_authorization(identity, custody)
    )


@router.get("/{identity}", response_model=LedgerAccountResponse)
def get_account(
    identity: str,
    ledger: SqlValueLedger = Depends(get_ledger),
    settings=Depends(get_settings)
):
    try:
        return _account_response(ledger, identity, settings.custody_identity)
    except Exception as e:
        logger.error(f"Failed to get account {identity}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/approve", response_model=LedgerAccountResponse)
def approve(
    payload: ApproveRequest,
    caller: Optional[str] = Depends(get_caller),
    ledger: SqlValueLedger = Depends(get_ledger),
    settings=Depends(get_settings),
    db: Session = Depends(get_db)
):
    """
    呼叫者授權 custody 最多可以拉取 amount（覆蓋舊額度）
    """
    try:
        if not caller:
            raise MissingIdentity()

        _approve(db, ledger, caller, settings.custody_identity, payload.amount)

        return _account_response(ledger, caller, settings.custody_identity)

    except PotGameException as e:
        raise to_http_exception(e)
    except LedgerError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to approve: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/mint", response_model=LedgerAccountResponse)
def mint(
    payload: MintRequest,
    caller: Optional[str] = Depends(get_caller),
    ledger: SqlValueLedger = Depends(get_ledger),
    guard: AccessGuard = Depends(get_access_guard),
    settings=Depends(get_settings),
    db: Session = Depends(get_db)
):
    """
    發行餘額給指定身分（Admin endpoint）
    """
    try:
        guard.require_admin(db, caller)

        _credit(db, ledger, payload.identity, payload.amount)

        logger.info(f"{caller} minted {payload.amount} to {payload.identity}")
        return _account_response(ledger, payload.identity, settings.custody_identity)

    except PotGameException as e:
        raise to_http_exception(e)
    except LedgerError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to mint: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
