from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Dict, Optional
from mfg_inventory.models.user import UserRole, PERMISSION_KEYS


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=4)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: dict  # User information


class Principal(BaseModel):
    """
    Authenticated caller, built once per request and passed explicitly into
    service calls that need to scope by unit.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    name: str
    role: UserRole
    unit_id: Optional[int] = None
    permissions: Dict[str, bool] = Field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin

    def has_permission(self, permission: str) -> bool:
        if self.is_admin:
            return True
        return bool(self.permissions.get(permission, False))

    def can_access_unit(self, unit_id: Optional[int]) -> bool:
        """Admins see every unit; unit-scoped users only their own."""
        if self.is_admin:
            return True
        return unit_id is not None and unit_id == self.unit_id

    @classmethod
    def from_user(cls, user) -> "Principal":
        stored = user.permissions or {}
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            unit_id=user.unit_id,
            permissions={key: bool(stored.get(key, False)) for key in PERMISSION_KEYS},
        )
