from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool
from pydantic_settings import BaseSettings
from functools import lru_cache, wraps
import logging

from core.exceptions import PotGameException

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./pot_game.db"

    # 身分
    admin_identity: str = "admin"
    custody_identity: str = "pot-custody"

    # 系統初始化時的回合參數（第一次 start_round 之前）
    initial_stake_amount: int = 10
    initial_extension_delay: int = 300

    # start_round 的參數下限
    minimum_stake: int = 1
    minimum_extension_delay: int = 60

    # winner_only | anyone（見 models.ClaimPolicy）
    claim_policy: str = "winner_only"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()


def make_engine(database_url: str):
    """
    依照資料庫類型建立 Engine

    SQLite 需要特殊設定：connect_args={"check_same_thread": False}
    這允許多執行緒存取同一個 SQLite 連線（FastAPI 的多執行緒環境需要）

    記憶體資料庫（sqlite://）每條連線都是獨立的資料庫，
    所以改用 StaticPool 讓所有 session 共用同一條連線
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


engine = make_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency：提供 Database Session

    使用 yield 確保 session 在請求結束後會被關閉
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _find_session(args, kwargs):
    if isinstance(kwargs.get("db"), Session):
        return kwargs["db"]
    for arg in args:
        if isinstance(arg, Session):
            return arg
    return None


def transactional(func):
    """
    Transaction decorator：確保資料庫操作的原子性

    使用方式：
        @transactional
        def place_bet(self, db: Session, bettor: str):
            # 所有 DB 操作（包含 SqlValueLedger 的轉帳）都在同一個 transaction 內
            ...
            # 不需要手動 commit，decorator 會處理

    如果函式內發生異常：
        - 自動 rollback（外部轉帳失敗時，回合狀態不會有任何改變）
        - 異常會被重新拋出（讓上層處理）

    注意：
        - 參數中必須有一個 db: Session（位置參數或 keyword 皆可）
        - 不要在函式內手動 commit（decorator 會處理）
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        db = _find_session(args, kwargs)

        if db is None:
            raise ValueError(
                f"@transactional requires a 'db: Session' argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except PotGameException as e:
            # 前置條件或外部轉帳失敗：屬於正常業務拒絕，不需要 traceback
            logger.warning(f"Transaction rejected in {func.__name__}: {type(e).__name__}: {e}")
            db.rollback()
            raise
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise

    return wrapper
