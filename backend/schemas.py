from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class UserCreate(BaseModel):
    email: EmailStr = Field(..., examples=["aluno@estudante.com.br"])
    password: str = Field(..., min_length=8, max_length=72)


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: EmailStr
    created_at: datetime
    is_admin: bool = False


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class FavoriteCreate(BaseModel):
    symbol: str = Field(..., examples=["USD-BRL"])

    @field_validator("symbol")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.strip().upper()


class FavoriteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    symbol: str
    created_at: datetime


class ConversionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int | None
    source_currency: str
    target_currency: str
    amount: float
    rate: float
    result: float
    created_at: datetime


class QuoteHistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    symbol: str
    value: float
    change_pct: float | None
    recorded_at: datetime


class Page(BaseModel):
    total: int
    offset: int
    limit: int
    next_offset: int | None


class ConversionPage(Page):
    items: list[ConversionOut]


class QuoteHistoryPage(Page):
    items: list[QuoteHistoryOut]
