from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field
from openbook.models.trade import TradeSide

class SessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    side: TradeSide
    stake: Decimal
    pnl: Decimal = Field(alias="proposedPnl")
