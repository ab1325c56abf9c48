"""
ParameterStore：回合參數的驗證與寫入

職責：
1. 驗證新回合的參數（截止時間、下注額、延長秒數）
2. 把驗證過的參數寫進 RoundState
3. 每筆有效下注把截止時間往後延

政策（下限、單位）和機制（狀態轉換）分開：
要換政策只需要換一個 ParameterStore，不必動 RoundLedger
"""
import logging

from models import RoundState
from core.exceptions import InvalidParameter

logger = logging.getLogger(__name__)


def _require_int(field: str, value) -> int:
    # bool 是 int 的子類別，要特別排除
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameter(field, f"must be an integer, got {value!r}")
    return value


class ParameterStore:
    """回合參數政策"""

    def __init__(self, minimum_stake: int, minimum_extension_delay: int):
        if minimum_stake < 1:
            # 下注額必須 > 0，否則 fund 可能是 0 但有 last_contributor
            raise ValueError(f"minimum_stake must be >= 1, got {minimum_stake}")
        if minimum_extension_delay < 1:
            # 延長秒數必須 > 0，否則下注不會推遲截止時間
            raise ValueError(f"minimum_extension_delay must be >= 1, got {minimum_extension_delay}")
        self.minimum_stake = minimum_stake
        self.minimum_extension_delay = minimum_extension_delay

    @classmethod
    def from_settings(cls, settings) -> "ParameterStore":
        return cls(
            minimum_stake=settings.minimum_stake,
            minimum_extension_delay=settings.minimum_extension_delay,
        )

    def validate(self, new_close_time, new_delay, new_stake, now: int) -> None:
        """
        驗證新回合參數

        規則：
        - close_time 必須嚴格晚於 now
        - stake_amount >= minimum_stake
        - extension_delay >= minimum_extension_delay

        異常：
            InvalidParameter: field 為 close_time / stake_amount / extension_delay
        """
        new_close_time = _require_int("close_time", new_close_time)
        new_stake = _require_int("stake_amount", new_stake)
        new_delay = _require_int("extension_delay", new_delay)

        if new_close_time <= now:
            raise InvalidParameter("close_time", f"{new_close_time} is not after now ({now})")

        if new_stake < self.minimum_stake:
            raise InvalidParameter(
                "stake_amount", f"{new_stake} is below minimum {self.minimum_stake}"
            )

        if new_delay <= 0:
            raise InvalidParameter("extension_delay", f"{new_delay} must be positive")

        if new_delay < self.minimum_extension_delay:
            raise InvalidParameter(
                "extension_delay",
                f"{new_delay} is below minimum {self.minimum_extension_delay}"
            )

    def apply(self, round_state: RoundState, new_close_time: int, new_delay: int, new_stake: int) -> None:
        """寫入已驗證的參數（只應該由 start_round 呼叫）"""
        round_state.close_time = new_close_time
        round_state.extension_delay = new_delay
        round_state.stake_amount = new_stake

    def extend_close_time(self, round_state: RoundState) -> int:
        """有效下注：close_time += extension_delay，返回新的截止時間"""
        round_state.close_time = round_state.close_time + round_state.extension_delay
        return round_state.close_time
