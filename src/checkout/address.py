"""Shipping address value and the structural completeness check.

``is_complete`` is a pure predicate used by the state machine, the rate
service and the cart address sync alike, so an address accepted in one place
is accepted everywhere.
"""

from dataclasses import asdict, dataclass

from protean.exceptions import ValidationError

REQUIRED_FIELDS = ("line1", "city", "state", "postal_code", "country")


@dataclass(frozen=True)
class Address:
    line1: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = "US"
    line2: str = ""
    name: str = ""
    phone: str = ""
    email: str = ""

    @classmethod
    def from_dict(cls, data: dict | None) -> "Address":
        """Build an address from loosely-shaped input, trimming whitespace.

        Accepts both the storefront keys (``line1``, ``postal_code``) and the
        commerce-engine keys (``address_1``, ``country_code``).
        """
        data = data or {}

        def pick(*keys):
            for key in keys:
                value = data.get(key)
                if isinstance(value, str) and value.strip():
                    return value.strip()
            return ""

        return cls(
            line1=pick("line1", "address_1", "street1"),
            line2=pick("line2", "address_2", "street2"),
            city=pick("city"),
            state=pick("state", "province"),
            postal_code=pick("postal_code", "postalCode", "zip"),
            country=(pick("country", "country_code", "countryCode") or "US").upper(),
            name=pick("name"),
            phone=pick("phone"),
            email=pick("email"),
        )

    def to_dict(self) -> dict:
        return asdict(self)

    def to_commerce(self) -> dict:
        """Shape expected by the commerce engine's cart address fields."""
        first_name, _, last_name = self.name.partition(" ")
        return {
            "first_name": first_name,
            "last_name": last_name,
            "address_1": self.line1,
            "address_2": self.line2,
            "city": self.city,
            "province": self.state,
            "postal_code": self.postal_code,
            "country_code": self.country.lower(),
            "phone": self.phone,
        }


def is_complete(address: Address | None) -> bool:
    """True when every structurally required field is a non-blank string."""
    if address is None:
        return False
    return all(isinstance(getattr(address, f), str) and getattr(address, f).strip() for f in REQUIRED_FIELDS)


def require_complete(address: Address | None, field_name: str = "address") -> Address:
    """Return the address or raise ``ValidationError`` naming the missing parts."""
    if address is None:
        raise ValidationError({field_name: ["Address is required"]})
    missing = [f for f in REQUIRED_FIELDS if not getattr(address, f).strip()]
    if missing:
        raise ValidationError({field_name: [f"Missing required address fields: {', '.join(missing)}"]})
    return address
