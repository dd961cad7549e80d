from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Optional


class TicketTypeCreate(BaseModel):
    name: str = Field(min_length=2, max_length=50)
    unit_price: int = Field(ge=0, description="Price in minor currency units")
    quota: int = Field(ge=1)


class TicketTypeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    unit_price: Optional[int] = Field(default=None, ge=0)
    quota: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def require_one_field(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class TicketTypeResponse(BaseModel):
    id: int
    name: str
    unit_price: int
    quota: int
    sold_count: int
    available: int
    is_sold_out: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
