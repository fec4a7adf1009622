"""Operator identity passed explicitly into every draft."""
import enum
from dataclasses import dataclass
from typing import Any, Mapping, Optional


class OperatorRole(enum.Enum):
    """Operator roles."""
    SELLER = 'SELLER'
    ADMIN = 'ADMIN'
    SUPERUSER = 'SUPERUSER'


@dataclass(frozen=True)
class OperatorContext:
    """
    Who is building the sale.

    Privileged operators (admin, superuser) choose the store and the seller;
    sellers have both pinned to their own identity.
    """
    user_id: int
    store_id: Optional[int] = None
    role: OperatorRole = OperatorRole.SELLER
    has_active_shift: bool = True

    @property
    def is_privileged(self) -> bool:
        return self.role in (OperatorRole.ADMIN, OperatorRole.SUPERUSER)

    @classmethod
    def from_session(cls, data: Mapping[str, Any]) -> Optional['OperatorContext']:
        """Build the context from session values (None when not logged in)."""
        user_id = data.get('user_id')
        if not user_id:
            return None

        try:
            role = OperatorRole(str(data.get('role') or OperatorRole.SELLER.value).upper())
        except ValueError:
            role = OperatorRole.SELLER

        store_id = data.get('store_id')
        return cls(
            user_id=int(user_id),
            store_id=int(store_id) if store_id else None,
            role=role,
            has_active_shift=bool(data.get('has_active_shift', False)),
        )
