from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import List, Optional
from decimal import Decimal


class OrderLine(BaseModel):
    product_id: str = Field(..., min_length=1, max_length=64)
    quantity: int = Field(..., ge=1)
    unit_price: Decimal = Field(..., ge=0)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class OrderContext(BaseModel):
    """Order as seen by the coupon engine. Read-only; never persisted here.

    When ``lines`` are given their totals must add up to ``subtotal``.
    """

    order_id: str = Field(..., min_length=1, max_length=64)
    customer_email: EmailStr
    subtotal: Decimal = Field(..., ge=0)
    lines: List[OrderLine] = Field(default_factory=list)
    has_prior_completed_purchase: Optional[bool] = None

    @field_validator("customer_email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @model_validator(mode="after")
    def validate_line_totals(self):
        if self.lines:
            lines_total = sum((line.line_total for line in self.lines), Decimal("0"))
            if lines_total != self.subtotal:
                raise ValueError(
                    f"Order lines total {lines_total} does not match subtotal {self.subtotal}"
                )
        return self

    @property
    def product_ids(self) -> List[str]:
        return [line.product_id for line in self.lines]
