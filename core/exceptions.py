"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理

所有異常都是「終止這次呼叫」：不會自動重試，原樣回報給呼叫者
"""


class PotGameException(Exception):
    """所有遊戲異常的基類"""
    pass


# ============ 回合狀態相關異常 ============

class RoundNotActive(PotGameException):
    """回合已結束（now >= close_time），不能再下注"""
    def __init__(self, close_time, now):
        self.close_time = close_time
        self.now = now
        super().__init__(f"Round closed at {close_time} (now={now})")


class RoundStillActive(PotGameException):
    """回合仍在進行中（now < close_time），不能領獎或開新回合"""
    def __init__(self, close_time, now):
        self.close_time = close_time
        self.now = now
        super().__init__(f"Round is active until {close_time} (now={now})")


# ============ 獎金池相關異常 ============

class PrizeFundEmpty(PotGameException):
    """獎金池是空的（已經領過或根本沒人下注）"""
    def __init__(self):
        super().__init__("Prize fund is empty")


class PrizeFundNotEmpty(PotGameException):
    """上一回合的獎金還沒被領走"""
    def __init__(self, fund):
        self.fund = fund
        super().__init__(f"Prize fund still holds {fund}, claim it before starting a new round")


# ============ 外部帳本相關異常 ============

class InsufficientBalance(PotGameException):
    """下注者餘額不足"""
    def __init__(self, identity, available, required):
        self.identity = identity
        self.available = available
        self.required = required
        super().__init__(f"{identity} has balance {available}, needs {required}")


class InsufficientAuthorization(PotGameException):
    """下注者授權給系統的額度不足"""
    def __init__(self, identity, authorized, required):
        self.identity = identity
        self.authorized = authorized
        self.required = required
        super().__init__(f"{identity} authorized {authorized}, needs {required}")


class TransferFailed(PotGameException):
    """外部帳本轉帳失敗（不會自動重試）"""
    def __init__(self, source, destination, amount, reason=None):
        self.source = source
        self.destination = destination
        self.amount = amount
        self.reason = reason
        message = f"Transfer of {amount} from {source} to {destination} failed"
        if reason:
            message += f": {reason}"
        super().__init__(message)


# ============ 權限 / 參數相關異常 ============

class Unauthorized(PotGameException):
    """呼叫者沒有權限執行此操作"""
    pass


class MissingIdentity(Unauthorized):
    """請求沒有帶呼叫者身分"""
    def __init__(self):
        super().__init__("Caller identity is required")


class InvalidParameter(PotGameException):
    """參數不合法，field 指出是哪一個欄位"""
    def __init__(self, field, reason):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")
