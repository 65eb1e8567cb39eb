from decimal import Decimal
from typing import Dict, Optional
from pydantic import BaseModel, ConfigDict, Field
from openbook.models.trade import TradeResult

class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

class TopupRequest(_Body):
    user_id: int = Field(alias="userId")
    asset: str = "USDT"
    amount: Decimal
    mode: str = "ADD"
    note: Optional[str] = None

class RequestActionRequest(_Body):
    request_id: int = Field(alias="requestId")
    action: str
    note: Optional[str] = None

class MiningActionRequest(_Body):
    mining_id: int = Field(alias="miningId")
    note: Optional[str] = None

class DepositAddressesRequest(_Body):
    addresses: Dict[str, str]

class TradePermissionRequest(_Body):
    user_id: int = Field(alias="userId")
    buy_enabled: bool = Field(alias="buyEnabled")
    sell_enabled: bool = Field(alias="sellEnabled")

class OrderResultRequest(_Body):
    user_id: int = Field(alias="userId")
    result: TradeResult

class UserRestrictionsRequest(_Body):
    user_id: int = Field(alias="userId")
    trade_restricted: bool = Field(alias="tradeRestricted")
    mining_restricted: bool = Field(alias="miningRestricted")

class NotifyRequest(_Body):
    user_id: int = Field(alias="userId")
    subject: str
    message: str
class SubAdminCreateRequest(_Body):
    wallet_address: str = Field(alias="walletAddress")
    username: Optional[str] = None

class SubAdminStatusRequest(_Body):
    subadmin_id: int = Field(alias="subadminId")
    action: str

class AssignInviteRequest(_Body):
    user_id: int = Field(alias="userId")
    invitation_code: str = Field(alias="invitationCode")
