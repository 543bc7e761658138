from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

CUSTOMER = "customer"
RETAILER = "retailer"
ADMIN = "admin"


class AuthUser(BaseModel):
    """
    Represents an authenticated user decoded from the bearer token.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="sub")
    email: Optional[EmailStr] = None
    role: str = CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN
