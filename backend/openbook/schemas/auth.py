from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

class NonceResponse(BaseModel):
    nonce: str
    message: str

class VerifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    address: str
    signature: str
    # only read when the wallet signs in for the first time
    invitation_code: Optional[str] = Field(default=None, alias="invitationCode")

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
