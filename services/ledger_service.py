"""
外部帳本（Value Ledger）介面與內建實作

ValueLedgerGateway：核心需要外部帳本提供的能力（餘額、授權額度、轉帳）
SqlValueLedger：以同一個 SQLAlchemy Session 實作的帳本，
    轉帳和回合狀態在同一個 transaction 內，rollback 時一起還原

信任邊界：
- preflight_pull() 只是提前檢查，不代表轉帳一定會成功
- 真正的判斷是 pull_transfer() / push_transfer() 的回傳值
"""
from abc import ABC, abstractmethod
from typing import Optional
import logging

from sqlalchemy.orm import Session

from models import LedgerAccount, LedgerAllowance
from core.exceptions import InsufficientBalance, InsufficientAuthorization

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """帳本實作內部錯誤（網路、簽章、資料不一致等），核心會轉成 TransferFailed"""
    pass


class ValueLedgerGateway(ABC):
    """
    核心對外部帳本的最小需求

    實作應該以回傳 False 或拋出 LedgerError 表示轉帳失敗；
    其他例外（例如網路客戶端的 TimeoutError）核心也會當成 TransferFailed 處理
    """

    @abstractmethod
    def available_balance(self, identity: str) -> int:
        pass

    @abstractmethod
    def spend_authorization(self, owner: str, spender: str) -> int:
        pass

    @abstractmethod
    def pull_transfer(self, source: str, destination: str, amount: int) -> bool:
        """
        從 source 拉取 amount 到 destination，並扣除 destination 在 source 上的授權額度

        全有或全無：回傳 True 表示全額移動，False 表示完全沒有移動
        """
        pass

    @abstractmethod
    def push_transfer(self, source: str, destination: str, amount: int) -> bool:
        """
        從系統持有的帳戶（custody）直接轉出 amount，不需要授權額度

        全有或全無：回傳 True 表示全額移動，False 表示完全沒有移動
        """
        pass


def preflight_pull(gateway: ValueLedgerGateway, owner: str, spender: str, amount: int) -> None:
    """
    下注前的提前檢查（advisory）

    異常：
        InsufficientBalance: owner 餘額 < amount
        InsufficientAuthorization: owner 授權給 spender 的額度 < amount
    """
    available = gateway.available_balance(owner)
    if available < amount:
        raise InsufficientBalance(owner, available, amount)

    authorized = gateway.spend_authorization(owner, spender)
    if authorized < amount:
        raise InsufficientAuthorization(owner, authorized, amount)


class SqlValueLedger(ValueLedgerGateway):
    """
    內建 SQL 帳本

    所有寫入都只 flush、不 commit，由呼叫端（@transactional）決定 commit 或 rollback
    """

    def __init__(self, db: Session):
        self.db = db

    # ============ 查詢 ============

    def _account(self, identity: str, create: bool = False) -> Optional[LedgerAccount]:
        account = self.db.query(LedgerAccount).filter(
            LedgerAccount.identity == identity
        ).first()
        if account is None and create:
            account = LedgerAccount(identity=identity, balance=0)
            self.db.add(account)
            self.db.flush()
        return account

    def _allowance(self, owner: str, spender: str) -> Optional[LedgerAllowance]:
        return self.db.query(LedgerAllowance).filter(
            LedgerAllowance.owner == owner,
            LedgerAllowance.spender == spender
        ).first()

    def available_balance(self, identity: str) -> int:
        account = self._account(identity)
        return account.balance if account else 0

    def spend_authorization(self, owner: str, spender: str) -> int:
        allowance = self._allowance(owner, spender)
        return allowance.amount if allowance else 0

    # ============ 寫入 ============

    def credit(self, identity: str, amount: int) -> int:
        """發行（mint）amount 給 identity，返回新餘額"""
        if amount <= 0:
            raise LedgerError(f"Credit amount must be positive, got {amount}")
        account = self._account(identity, create=True)
        account.balance += amount
        self.db.flush()
        logger.info(f"Credited {amount} to {identity}, balance={account.balance}")
        return account.balance

    def approve(self, owner: str, spender: str, amount: int) -> int:
        """owner 授權 spender 最多可以拉取 amount（覆蓋舊的額度）"""
        if amount < 0:
            raise LedgerError(f"Allowance must not be negative, got {amount}")
        allowance = self._allowance(owner, spender)
        if allowance is None:
            allowance = LedgerAllowance(owner=owner, spender=spender, amount=amount)
            self.db.add(allowance)
        else:
            allowance.amount = amount
        self.db.flush()
        logger.info(f"{owner} approved {spender} for {amount}")
        return amount

    def _move(self, source: str, destination: str, amount: int) -> bool:
        if amount <= 0:
            logger.warning(f"Rejected transfer of non-positive amount {amount}")
            return False

        source_account = self._account(source)
        if source_account is None or source_account.balance < amount:
            logger.warning(
                f"Transfer {source} -> {destination} rejected: "
                f"balance {source_account.balance if source_account else 0} < {amount}"
            )
            return False

        destination_account = self._account(destination, create=True)
        source_account.balance -= amount
        destination_account.balance += amount
        self.db.flush()
        return True

    def pull_transfer(self, source: str, destination: str, amount: int) -> bool:
        allowance = self._allowance(source, destination)
        if allowance is None or allowance.amount < amount:
            logger.warning(
                f"Pull {source} -> {destination} rejected: "
                f"allowance {allowance.amount if allowance else 0} < {amount}"
            )
            return False

        if not self._move(source, destination, amount):
            return False

        allowance.amount -= amount
        self.db.flush()
        return True

    def push_transfer(self, source: str, destination: str, amount: int) -> bool:
        return self._move(source, destination, amount)
