from datetime import date
from pydantic import BaseModel, ConfigDict, EmailStr, Field, StrictInt


class CreateReservationRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    facility_id: int = Field(..., gt=0)
    site_id: int = Field(..., gt=0)
    reservation_date: date
    time_slots: list[StrictInt]
    total_amount: StrictInt = Field(..., ge=0)
    special_requests: str | None = Field(None, max_length=1000)

    customer_id: int | None = Field(None, gt=0)
    guest_name: str | None = Field(None, max_length=120)
    guest_phone: str | None = Field(None, max_length=32)
    guest_email: EmailStr | None = None


class StatusUpdateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    status: str
    admin_memo: str | None = Field(None, max_length=2000)
    payment_status: str | None = None


class UpdateReservationRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    special_requests: str | None = Field(None, max_length=1000)


class CancelReservationRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    reason: str | None = Field(None, max_length=500)
    guest_phone: str | None = Field(None, max_length=32)


class ReservationListQuery(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    status: str | None = None
    facility_id: int | None = Field(None, gt=0)
    date_from: date | None = None
    date_to: date | None = None
