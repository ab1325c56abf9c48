"""
RoundLedger：回合生命週期與獎金池的狀態機

兩個邏輯狀態（由時間決定，不另外存 status 欄位）：
- ACTIVE：now < close_time，可以下注
- CLOSED：now >= close_time，可以領獎；獎金池為空時管理員可以開新回合

狀態轉換：
- place_bet：ACTIVE 時下注，延長 close_time，累積 fund
- claim_prize：CLOSED 且 fund > 0 時，把 fund 發給最後下注者並清空
- start_round：CLOSED 且 fund == 0 時，管理員重設參數、重新開放

原子性：
- 每個轉換都是 @serialized + @transactional
- 順序固定為「檢查 → 外部轉帳 → 寫入狀態」，轉帳失敗就拋出 TransferFailed，
  decorator 會 rollback，外界看不到任何部分更新
- 轉帳失敗不會自動重試
"""
from sqlalchemy.orm import Session
from typing import Dict, Any, Optional
import logging

from database import transactional
from models import ClaimPolicy
from core.locks import serialized, with_round_lock
from core.parameter_store import ParameterStore
from core.access_guard import AccessGuard
from core.exceptions import (
    RoundNotActive,
    RoundStillActive,
    PrizeFundEmpty,
    PrizeFundNotEmpty,
    TransferFailed,
    Unauthorized,
    MissingIdentity,
    InvalidParameter
)
from services.ledger_service import ValueLedgerGateway, LedgerError, preflight_pull
from services.state_service import get_round_state
from services.event_service import record_event, BET_PLACED, PRIZE_CLAIMED, ROUND_STARTED
from services.clock_service import Clock, system_clock

logger = logging.getLogger(__name__)


class RoundLedger:
    """回合 / 獎金池狀態機"""

    def __init__(
        self,
        gateway: ValueLedgerGateway,
        custody_identity: str,
        parameter_store: ParameterStore,
        access_guard: AccessGuard,
        claim_policy: ClaimPolicy = ClaimPolicy.WINNER_ONLY,
        clock: Clock = system_clock,
    ):
        if not custody_identity:
            raise ValueError("custody_identity is required")
        self.gateway = gateway
        self.custody_identity = custody_identity
        self.parameter_store = parameter_store
        self.access_guard = access_guard
        self.claim_policy = ClaimPolicy(claim_policy)
        self.clock = clock

    @classmethod
    def from_settings(cls, gateway: ValueLedgerGateway, settings, clock: Clock = system_clock) -> "RoundLedger":
        return cls(
            gateway=gateway,
            custody_identity=settings.custody_identity,
            parameter_store=ParameterStore.from_settings(settings),
            access_guard=AccessGuard(clock=clock),
            claim_policy=settings.claim_policy,
            clock=clock,
        )

    # ============ 內部工具 ============

    def _execute_transfer(self, operation, source: str, destination: str, amount: int) -> None:
        """
        呼叫外部帳本轉帳，任何失敗都轉成 TransferFailed

        注意：
            - 帳本回傳 False、拋出 LedgerError 或任何其他例外（逾時、連線中斷）都視為失敗
            - 不重試
        """
        try:
            succeeded = operation(source, destination, amount)
        except LedgerError as e:
            raise TransferFailed(source, destination, amount, reason=str(e)) from e
        except Exception as e:
            logger.error(f"Ledger raised unexpectedly on {source} -> {destination}: {e}", exc_info=True)
            raise TransferFailed(source, destination, amount, reason=f"{type(e).__name__}: {e}") from e

        if not succeeded:
            raise TransferFailed(source, destination, amount, reason="rejected by ledger")

    # ============ 狀態轉換 ============

    @serialized
    @transactional
    def place_bet(self, db: Session, bettor: Optional[str]) -> Dict[str, Any]:
        """
        下注

        前置條件：
        1. 回合必須是 ACTIVE（now < close_time，剛好等於也算結束）
        2. 下注者餘額 >= stake_amount
        3. 下注者授權給 custody 的額度 >= stake_amount

        流程：
        1. 鎖定回合並檢查狀態
        2. 提前檢查餘額 / 授權（advisory）
        3. 從下注者拉取 stake_amount 到 custody
        4. fund += stake，記錄最後下注者，close_time += extension_delay
        5. 記錄 BET_PLACED 事件

        參數：
            db: SQLAlchemy Session
            bettor: 下注者身分

        返回：
            下注收據 dict（bettor, amount, fund, close_time, timestamp, round_number）

        異常：
            MissingIdentity: 沒有帶身分
            InvalidParameter: bettor 是 custody 本身
            RoundNotActive: 回合已結束
            InsufficientBalance / InsufficientAuthorization: 提前檢查失敗
            TransferFailed: 拉取失敗（狀態完全不變）
        """
        if not bettor:
            raise MissingIdentity()
        if bettor == self.custody_identity:
            raise InvalidParameter("bettor", "custody account cannot place bets")

        now = self.clock()

        # 1. 取得並鎖定回合
        round_state = with_round_lock(db).one()
        if not round_state.is_active(now):
            raise RoundNotActive(round_state.close_time, now)

        stake = round_state.stake_amount

        # 2. 提前檢查（轉帳本身才是最終判斷）
        preflight_pull(self.gateway, bettor, self.custody_identity, stake)

        # 3. 拉取下注金額
        self._execute_transfer(self.gateway.pull_transfer, bettor, self.custody_identity, stake)

        # 4. 更新回合狀態
        round_state.fund = round_state.fund + stake
        round_state.last_contributor = bettor
        round_state.last_contribution_time = now
        new_close_time = self.parameter_store.extend_close_time(round_state)

        # 5. 記錄事件
        record_event(
            db,
            BET_PLACED,
            identity=bettor,
            amount=stake,
            timestamp=now,
            round_number=round_state.round_number,
            fund=round_state.fund,
            close_time=new_close_time,
        )

        logger.info(
            f"Bet placed by {bettor}: stake={stake} fund={round_state.fund} "
            f"close_time={new_close_time}"
        )

        return {
            "bettor": bettor,
            "amount": stake,
            "fund": round_state.fund,
            "close_time": new_close_time,
            "timestamp": now,
            "round_number": round_state.round_number,
        }

    @serialized
    @transactional
    def claim_prize(self, db: Session, caller: Optional[str]) -> Dict[str, Any]:
        """
        領獎

        前置條件：
        1. 回合必須是 CLOSED
        2. fund > 0
        3. claim_policy == WINNER_ONLY 時，caller 必須是最後下注者

        流程：
        1. 鎖定回合並檢查狀態
        2. 從 custody 把整個 fund 轉給最後下注者
        3. 清空 fund / last_contributor / last_contribution_time
        4. 記錄 PRIZE_CLAIMED 事件

        參數：
            db: SQLAlchemy Session
            caller: 觸發領獎的身分（ANYONE 政策下可以是任何人）

        返回：
            領獎收據 dict（winner, amount, timestamp, round_number）

        異常：
            RoundStillActive: 回合還沒結束
            PrizeFundEmpty: 沒有獎金可領（包含重複領獎）
            Unauthorized: WINNER_ONLY 政策下 caller 不是最後下注者
            TransferFailed: 發放失敗（狀態完全不變）
        """
        now = self.clock()

        round_state = with_round_lock(db).one()
        if round_state.is_active(now):
            raise RoundStillActive(round_state.close_time, now)

        if round_state.fund == 0:
            raise PrizeFundEmpty()

        winner = round_state.last_contributor
        if winner is None:
            # fund > 0 必定有 last_contributor
            raise RuntimeError(f"Round state corrupted: fund={round_state.fund} without contributor")

        if self.claim_policy == ClaimPolicy.WINNER_ONLY:
            if not caller:
                raise MissingIdentity()
            if caller != winner:
                raise Unauthorized(f"Only the last contributor can claim the prize, not {caller}")

        prize = round_state.fund

        self._execute_transfer(self.gateway.push_transfer, self.custody_identity, winner, prize)

        round_state.fund = 0
        round_state.last_contributor = None
        round_state.last_contribution_time = None

        record_event(
            db,
            PRIZE_CLAIMED,
            identity=winner,
            amount=prize,
            timestamp=now,
            round_number=round_state.round_number,
            triggered_by=caller,
        )

        logger.info(f"Prize of {prize} paid to {winner} (triggered by {caller})")

        return {
            "winner": winner,
            "amount": prize,
            "timestamp": now,
            "round_number": round_state.round_number,
        }

    @serialized
    @transactional
    def start_round(self, db: Session, new_close_time, new_delay, new_stake, admin: Optional[str]) -> Dict[str, Any]:
        """
        開新回合（管理員）

        前置條件（依序檢查）：
        1. admin 必須通過 AccessGuard
        2. 回合必須是 CLOSED
        3. fund == 0（上一回合的獎金已被領走）
        4. 參數通過 ParameterStore 驗證

        參數：
            db: SQLAlchemy Session
            new_close_time: 新的截止時間（unix 秒，必須晚於現在）
            new_delay: 每筆下注延長的秒數
            new_stake: 每筆下注金額
            admin: 呼叫者身分

        返回：
            新回合狀態 dict

        異常：
            Unauthorized: 不是管理員
            RoundStillActive: 回合還在進行中
            PrizeFundNotEmpty: 獎金還沒被領走
            InvalidParameter: 參數不合法（field 指出欄位）
        """
        self.access_guard.require_admin(db, admin)

        now = self.clock()

        round_state = with_round_lock(db).one()
        if round_state.is_active(now):
            raise RoundStillActive(round_state.close_time, now)

        if round_state.fund != 0:
            raise PrizeFundNotEmpty(round_state.fund)

        self.parameter_store.validate(new_close_time, new_delay, new_stake, now)
        self.parameter_store.apply(round_state, new_close_time, new_delay, new_stake)
        round_state.round_number = round_state.round_number + 1

        record_event(
            db,
            ROUND_STARTED,
            identity=admin,
            amount=new_stake,
            timestamp=now,
            round_number=round_state.round_number,
            close_time=new_close_time,
            extension_delay=new_delay,
        )

        logger.info(
            f"Round {round_state.round_number} started by {admin}: "
            f"close_time={new_close_time} delay={new_delay} stake={new_stake}"
        )

        return round_state.to_dict()

    # ============ 唯讀查詢（不加鎖） ============

    def is_active(self, db: Session) -> bool:
        return get_round_state(db).is_active(self.clock())

    def current_fund(self, db: Session) -> int:
        return get_round_state(db).fund

    def close_time(self, db: Session) -> int:
        return get_round_state(db).close_time

    def extension_delay(self, db: Session) -> int:
        return get_round_state(db).extension_delay

    def stake_amount(self, db: Session) -> int:
        return get_round_state(db).stake_amount

    def last_contribution_time(self, db: Session) -> Optional[int]:
        return get_round_state(db).last_contribution_time

    def last_contributor(self, db: Session) -> Optional[str]:
        return get_round_state(db).last_contributor

    def get_status(self, db: Session) -> Dict[str, Any]:
        """回合快照（給前端倒數計時用）"""
        now = self.clock()
        round_state = get_round_state(db)
        status = round_state.to_dict()
        status.update({
            "now": now,
            "is_active": round_state.is_active(now),
            "seconds_remaining": max(0, round_state.close_time - now),
            "claim_policy": self.claim_policy.value,
        })
        return status
