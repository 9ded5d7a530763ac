from pydantic import BaseModel
from typing import Optional

class UserOut(BaseModel):
    id: int
    name: str
    last_name: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    phone: Optional[str] = None

    class Config:
        from_attributes = True
        frozen = True

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.name, self.last_name) if part)
