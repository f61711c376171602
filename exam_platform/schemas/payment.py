from pydantic import BaseModel, Field


class Balance(BaseModel):
    user_id: int
    balance: float


class TopUpRequest(BaseModel):
    user_id: int
    amount: float = Field(gt=0)


class TopUpResult(BaseModel):
    transaction_id: str
    balance: float
