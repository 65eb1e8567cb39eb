from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field

class PurchaseRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    plan_id: str = Field(alias="planId", min_length=1)
    amount: Decimal

class AbortRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: int = Field(alias="orderId")
