"""
SQLAlchemy Models

- RoundState：唯一的回合資料列（id 固定為 1），只會被循環使用，不會被刪除
- AdminState：唯一的管理員資料列
- EventLog：每個會改變狀態的操作都記錄一筆事件（給前端 / 外部索引用）
- LedgerAccount / LedgerAllowance：內建 SQL 帳本（SqlValueLedger）的餘額與授權額度
"""
from sqlalchemy import Column, Integer, BigInteger, String, DateTime, JSON, UniqueConstraint
from datetime import datetime, timezone
from enum import Enum

from database import Base

ROUND_ROW_ID = 1
ADMIN_ROW_ID = 1


def _utcnow():
    return datetime.now(timezone.utc)


class ClaimPolicy(str, Enum):
    """誰可以觸發獎金發放"""
    WINNER_ONLY = "winner_only"  # 只有最後下注者本人可以領獎
    ANYONE = "anyone"            # 任何人都可以觸發，但獎金一律發給最後下注者


class RoundState(Base):
    __tablename__ = "round_state"

    id = Column(Integer, primary_key=True, default=ROUND_ROW_ID)
    round_number = Column(Integer, nullable=False, default=0)

    # 時間一律是 unix 秒，金額一律是帳本最小單位（整數）
    close_time = Column(BigInteger, nullable=False, default=0)
    stake_amount = Column(BigInteger, nullable=False)
    extension_delay = Column(BigInteger, nullable=False)

    fund = Column(BigInteger, nullable=False, default=0)
    last_contributor = Column(String(128), nullable=True)
    last_contribution_time = Column(BigInteger, nullable=True)

    def is_active(self, now: int) -> bool:
        return now < self.close_time

    def to_dict(self):
        return {
            "round_number": self.round_number,
            "close_time": self.close_time,
            "stake_amount": self.stake_amount,
            "extension_delay": self.extension_delay,
            "fund": self.fund,
            "last_contributor": self.last_contributor,
            "last_contribution_time": self.last_contribution_time,
        }


class AdminState(Base):
    __tablename__ = "admin_state"

    id = Column(Integer, primary_key=True, default=ADMIN_ROW_ID)
    admin_identity = Column(String(128), nullable=False)


class EventLog(Base):
    __tablename__ = "event_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_type = Column(String(32), nullable=False, index=True)
    identity = Column(String(128), nullable=True)
    amount = Column(BigInteger, nullable=False, default=0)
    timestamp = Column(BigInteger, nullable=False)
    round_number = Column(Integer, nullable=False, default=0)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class LedgerAccount(Base):
    __tablename__ = "ledger_account"

    identity = Column(String(128), primary_key=True)
    balance = Column(BigInteger, nullable=False, default=0)


class LedgerAllowance(Base):
    __tablename__ = "ledger_allowance"
    __table_args__ = (UniqueConstraint("owner", "spender", name="uq_allowance_owner_spender"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner = Column(String(128), nullable=False, index=True)
    spender = Column(String(128), nullable=False)
    amount = Column(BigInteger, nullable=False, default=0)
