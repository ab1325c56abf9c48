"""
並發控制工具

回合資料（獎金池、回合參數、最後下注者）是單一共享資源，
所有會修改它的操作必須完全序列化：

1. Process-level：`round_mutex`（threading.RLock），包住整個 transaction
   （讀取 → 外部轉帳 → 寫入 → commit）
2. Database-level：PostgreSQL 的 SELECT ... FOR UPDATE（悲觀鎖），
   讓多個 process 共用同一個資料庫時也不會互相覆蓋
   （SQLite 會忽略 FOR UPDATE，此時只靠 round_mutex）

唯讀查詢不需要鎖，直接讀最新 commit 的狀態即可
"""
from sqlalchemy.orm import Session, Query
from functools import wraps
import threading
import logging

from models import RoundState, AdminState, ROUND_ROW_ID, ADMIN_ROW_ID

logger = logging.getLogger(__name__)

round_mutex = threading.RLock()


def serialized(func):
    """
    以 round_mutex 序列化整個操作

    使用方式（順序很重要：鎖必須包在 transaction 外面，commit 完才放鎖）：
        @serialized
        @transactional
        def place_bet(self, db: Session, bettor: str):
            ...

    注意：
        - 使用 RLock，同一個執行緒內巢狀呼叫不會 deadlock
        - 沒有 timeout：操作本身都是短時間的，唯一可能慢的是外部轉帳
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        with round_mutex:
            return func(*args, **kwargs)

    return wrapper


def with_round_lock(db: Session) -> Query:
    """
    鎖定回合資料列（行級鎖）

    使用場景：
    - 下注、領獎、開新回合
    - 需要確保 RoundState 在整個 transaction 期間不被其他請求修改

    範例：
        round_state = with_round_lock(db).one()
        round_state.fund += stake

    參數：
        db: SQLAlchemy Session

    返回：
        Query object（需要呼叫 .one() 或 .first() 來取得結果）

    注意：
        - nowait=False 表示如果鎖被佔用，會等待
        - 必須在 transaction 內使用（確保有 commit 或 rollback）
    """
    return db.query(RoundState).filter(
        RoundState.id == ROUND_ROW_ID
    ).with_for_update(nowait=False)


def with_admin_lock(db: Session) -> Query:
    """
    鎖定管理員資料列（行級鎖）

    使用場景：
    - 轉移管理員權限時，避免兩個請求同時轉移
    """
    return db.query(AdminState).filter(
        AdminState.id == ADMIN_ROW_ID
    ).with_for_update(nowait=False)
