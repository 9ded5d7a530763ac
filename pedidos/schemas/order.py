from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal
from datetime import date

# ---------- Entrada ----------

class OrderLineCreate(BaseModel):
    product_id: int = Field(..., alias="productId")
    color: Optional[str] = None
    quantity: int = Field(..., ge=1)
    price: Decimal = Field(..., ge=0)
    name: Optional[str] = None

    class Config:
        populate_by_name = True

class OrderCreate(BaseModel):
    # opcionales para responder 400 (y no 422) cuando faltan
    user_id: Optional[int] = Field(None, alias="userId")
    lines: List[OrderLineCreate] = Field(default_factory=list)

    class Config:
        populate_by_name = True

# ---------- Valores inmutables ----------

class OrderLineOut(BaseModel):
    id: Optional[int] = None
    order_id: Optional[int] = None
    product_id: int
    color: Optional[str] = None
    quantity: int
    price: Decimal
    name: Optional[str] = None

    class Config:
        from_attributes = True
        frozen = True

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity

class OrderOut(BaseModel):
    id: int
    user_id: int
    order_date: date
    total: Decimal
    lines: List[OrderLineOut] = []

    class Config:
        from_attributes = True
        frozen = True
