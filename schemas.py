"""
Pydantic Schemas：API 的 request / response 格式
"""
from pydantic import BaseModel, Field
from typing import Optional, Union, Dict, Any, List


# ============ Round ============

class RoundStatusResponse(BaseModel):
    round_number: int
    close_time: int
    stake_amount: int
    extension_delay: int
    fund: int
    last_contributor: Optional[str] = None
    last_contribution_time: Optional[int] = None
    now: int
    is_active: bool
    seconds_remaining: int
    claim_policy: str


class RoundValueResponse(BaseModel):
    name: str
    value: Union[bool, int, None]


class StartRoundRequest(BaseModel):
    close_time: int = Field(..., description="新回合截止時間（unix 秒）")
    extension_delay: int = Field(..., description="每筆下注延長秒數")
    stake_amount: int = Field(..., description="每筆下注金額（帳本最小單位）")


class StartRoundResponse(BaseModel):
    round_number: int
    close_time: int
    stake_amount: int
    extension_delay: int
    fund: int
    last_contributor: Optional[str] = None
    last_contribution_time: Optional[int] = None


class BetReceipt(BaseModel):
    bettor: str
    amount: int
    fund: int
    close_time: int
    timestamp: int
    round_number: int


class ClaimReceipt(BaseModel):
    winner: str
    amount: int
    timestamp: int
    round_number: int


# ============ Admin ============

class AdminResponse(BaseModel):
    admin: str


class TransferAdminRequest(BaseModel):
    new_admin: str


# ============ Events ============

class EventResponse(BaseModel):
    id: int
    event_type: str
    identity: Optional[str] = None
    amount: int
    timestamp: int
    round_number: int
    data: Dict[str, Any] = {}


class EventListResponse(BaseModel):
    events: List[EventResponse]


# ============ Ledger ============

class LedgerAccountResponse(BaseModel):
    identity: str
    balance: int
    allowance: int = Field(..., description="授權給 custody 的額度")


class ApproveRequest(BaseModel):
    amount: int = Field(..., ge=0)


class MintRequest(BaseModel):
    identity: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0)
