"""
Round API Endpoints

重點：
1. 所有業務邏輯集中在 RoundLedger（狀態機 + transaction）
2. API 層只負責取得呼叫者身分、轉換錯誤碼
3. 查詢 endpoint 不加鎖，直接讀最新 commit 的狀態
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional

import logging

from database import get_db
from schemas import (
    RoundStatusResponse,
    RoundValueResponse,
    StartRoundRequest,
    StartRoundResponse,
    BetReceipt,
    ClaimReceipt
)
from core.round_ledger import RoundLedger
from core.exceptions import PotGameException
from api.dependencies import get_caller, get_round_ledger, to_http_exception

router = APIRouter(prefix="/api/round", tags=["round"])
logger = logging.getLogger(__name__)


@router.get("", response_model=RoundStatusResponse)
def get_round_status(
    ledger: RoundLedger = Depends(get_round_ledger),
    db: Session = Depends(get_db)
):
    """
    取得回合快照

    返回：
        - close_time / seconds_remaining: 倒數計時用
        - fund: 目前獎金池
        - last_contributor: 目前會贏的人
        - is_active: 是否還能下注
    """
    try:
        return RoundStatusResponse(**ledger.get_status(db))
    except Exception as e:
        logger.error(f"Failed to get round status: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


def _query(name: str, getter, db: Session) -> RoundValueResponse:
    try:
        return RoundValueResponse(name=name, value=getter(db))
    except Exception as e:
        logger.error(f"Failed to query {name}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/active", response_model=RoundValueResponse)
def is_active(ledger: RoundLedger = Depends(get_round_ledger), db: Session = Depends(get_db)):
    return _query("is_active", ledger.is_active, db)


@router.get("/fund", response_model=RoundValueResponse)
def current_fund(ledger: RoundLedger = Depends(get_round_ledger), db: Session = Depends(get_db)):
    return _query("fund", ledger.current_fund, db)


@router.get("/close-time", response_model=RoundValueResponse)
def close_time(ledger: RoundLedger = Depends(get_round_ledger), db: Session = Depends(get_db)):
    return _query("close_time", ledger.close_time, db)


@router.get("/extension-delay", response_model=RoundValueResponse)
def extension_delay(ledger: RoundLedger = Depends(get_round_ledger), db: Session = Depends(get_db)):
    return _query("extension_delay", ledger.extension_delay, db)


@router.get("/stake", response_model=RoundValueResponse)
def stake_amount(ledger: RoundLedger = Depends(get_round_ledger), db: Session = Depends(get_db)):
    return _query("stake_amount", ledger.stake_amount, db)


@router.get("/last-contribution-time", response_model=RoundValueResponse)
def last_contribution_time(ledger: RoundLedger = Depends(get_round_ledger), db: Session = Depends(get_db)):
    return _query("last_contribution_time", ledger.last_contribution_time, db)


@router.post("/bet", response_model=BetReceipt)
def place_bet(
    caller: Optional[str] = Depends(get_caller),
    ledger: RoundLedger = Depends(get_round_ledger),
    db: Session = Depends(get_db)
):
    """
    下注（金額固定為目前回合的 stake_amount）

    前置條件：
    - 回合必須進行中
    - 呼叫者在帳本上的餘額與授權額度足夠

    效果：
    - 從呼叫者拉取 stake_amount
    - 呼叫者成為最後下注者，截止時間往後延 extension_delay
    """
    try:
        receipt = ledger.place_bet(db, caller)
        return BetReceipt(**receipt)

    except PotGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to place bet: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/claim", response_model=ClaimReceipt)
def claim_prize(
    caller: Optional[str] = Depends(get_caller),
    ledger: RoundLedger = Depends(get_round_ledger),
    db: Session = Depends(get_db)
):
    """
    領獎

    前置條件：
    - 回合已結束
    - 獎金池不為空
    - claim_policy=winner_only 時，呼叫者必須是最後下注者

    效果：
    - 整個獎金池轉給最後下注者
    - 獎金池與最後下注者清空
    """
    try:
        receipt = ledger.claim_prize(db, caller)
        return ClaimReceipt(**receipt)

    except PotGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to claim prize: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/start", response_model=StartRoundResponse)
def start_round(
    payload: StartRoundRequest,
    caller: Optional[str] = Depends(get_caller),
    ledger: RoundLedger = Depends(get_round_ledger),
    db: Session = Depends(get_db)
):
    """
    開新回合（Admin endpoint）

    前置條件：
    - 呼叫者是管理員
    - 回合已結束且獎金已被領走
    - close_time 晚於現在，stake / delay 不低於下限
    """
    try:
        round_state = ledger.start_round(
            db,
            payload.close_time,
            payload.extension_delay,
            payload.stake_amount,
            caller
        )
        return StartRoundResponse(**round_state)

    except PotGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to start round: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
