from pydantic import BaseModel, Field, validator
from typing import Any, List, Optional

# Required on append; checked for truthiness, not type
REQUIRED_FIELDS = ("name", "amount", "date")


class DonationRecord(BaseModel):
    id: int
    name: str
    amount: float
    date: str
    location: str = ""
    payment_id: str = Field("", alias="paymentId")
    email: str = ""

    class Config:
        populate_by_name = True


class DonationCreate(BaseModel):
    """Append payload as sent by the donation front end.

    ``id``, ``amount`` and ``date`` are caller-controlled and written to the store as
    given, so they accept any JSON scalar.
    """
    id: Optional[Any] = None
    name: Optional[str] = None
    amount: Optional[Any] = None
    date: Optional[Any] = None
    location: Optional[str] = ""
    payment_id: Optional[str] = Field("", alias="paymentId")
    email: Optional[str] = ""

    class Config:
        populate_by_name = True

    @validator('location', 'payment_id', 'email', pre=True)
    def empty_optional_text(cls, v):
        if v is None:
            return ""
        return v

    def missing_fields(self) -> List[str]:
        """Names of required fields that are missing or empty."""
        return [field for field in REQUIRED_FIELDS if not getattr(self, field)]


class DonationListResponse(BaseModel):
    success: bool = True
    donations: List[DonationRecord]


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class HealthResponse(BaseModel):
    status: str
    message: str


class DonationStats(BaseModel):
    success: bool = True
    total_raised: float
    donor_count: int
    top_donation: Optional[DonationRecord] = None
