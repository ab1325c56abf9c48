"""
AccessGuard：單一管理員權限

職責：
1. 判斷某個身分是不是管理員
2. 由現任管理員把權限轉移給新的身分

身分本身是不透明字串（由呼叫端的認證機制決定），這裡只做比對
"""
from sqlalchemy.orm import Session
import logging

from core.locks import serialized, with_admin_lock
from core.exceptions import Unauthorized, InvalidParameter, MissingIdentity
from services.state_service import get_admin_state
from services.event_service import record_event, ADMIN_TRANSFERRED
from services.clock_service import Clock, system_clock
from database import transactional

logger = logging.getLogger(__name__)


class AccessGuard:
    """管理員權限檢查"""

    def __init__(self, clock: Clock = system_clock):
        self.clock = clock

    def admin_identity(self, db: Session) -> str:
        return get_admin_state(db).admin_identity

    def is_admin(self, db: Session, identity) -> bool:
        if not identity:
            return False
        return identity == self.admin_identity(db)

    def require_admin(self, db: Session, identity) -> None:
        """
        異常：
            MissingIdentity: 沒有帶身分
            Unauthorized: 身分不是管理員
        """
        if not identity:
            raise MissingIdentity()
        if not self.is_admin(db, identity):
            raise Unauthorized(f"{identity} is not the administrator")

    @serialized
    @transactional
    def transfer(self, db: Session, new_identity, caller) -> str:
        """
        轉移管理員權限

        參數：
            db: SQLAlchemy Session
            new_identity: 新管理員身分（不可為空）
            caller: 呼叫者身分（必須是現任管理員）

        返回：
            新管理員身分

        異常：
            Unauthorized: caller 不是現任管理員
            InvalidParameter: new_identity 為空
        """
        admin = with_admin_lock(db).one()

        if not caller:
            raise MissingIdentity()
        if caller != admin.admin_identity:
            raise Unauthorized(f"{caller} is not the administrator")

        if not isinstance(new_identity, str) or not new_identity.strip():
            raise InvalidParameter("new_admin", "must be a non-empty identity")

        previous = admin.admin_identity
        admin.admin_identity = new_identity.strip()

        record_event(
            db,
            ADMIN_TRANSFERRED,
            identity=admin.admin_identity,
            amount=0,
            timestamp=self.clock(),
            previous_admin=previous,
        )

        logger.info(f"Administrator transferred from {previous} to {admin.admin_identity}")
        return admin.admin_identity
