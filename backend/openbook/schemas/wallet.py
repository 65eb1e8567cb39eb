from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

class AdjustRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    delta_usdt: Decimal = Field(alias="deltaUSDT")

class ExchangeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_asset: str = Field(alias="fromAsset")
    to_asset: str = Field(alias="toAsset")
    amount: Decimal

class DepositCreateRequest(BaseModel):
    asset: str = "USDT"
    amount: Decimal

class WithdrawCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    asset: str = "USDT"
    amount: Decimal
    wallet_address: Optional[str] = Field(default=None, alias="walletAddress")
