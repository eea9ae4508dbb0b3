from pydantic import BaseModel, Field


class ChallengeResponse(BaseModel):
    message: str


class TokenRequest(BaseModel):
    principal: str = Field(..., min_length=1, description="Wallet address that signed the challenge")
    signature: str = Field(..., min_length=1, description="65-byte hex signature over the challenge")


class TokenResponse(BaseModel):
    token: str
