# ordering/services/identity.py
from dataclasses import dataclass

from ..utils.decorators import _current_user


@dataclass(frozen=True)
class Customer:
    id: int | None
    email: str | None
    name: str | None
    phone: str | None = None
    loyalty_balance: int = 0

    @classmethod
    def from_user(cls, u):
        return cls(
            id=u.id,
            email=u.email,
            name=u.name,
            phone=u.phone,
            loyalty_balance=int(u.loyalty_points or 0),
        )


def get_current_customer():
    """Authenticated customer from the JWT, read fresh (balance included); None if unknown."""
    u = _current_user()
    return Customer.from_user(u) if u else None
