"""
models.py
Domain dataclasses (customers, payment slots, renewals, pending profiles, settings)
and their JSON dict conversion.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum


class PaymentStatus(str, Enum):
    PAID = "paid"
    PENDING = "pending"
    UNPAID = "unpaid"

    @classmethod
    def _missing_(cls, value):
        # values written by the old dashboard
        legacy = {"pago": cls.PAID, "pendente": cls.PENDING, "nao_pago": cls.UNPAID}
        if isinstance(value, str):
            return legacy.get(value.strip().lower())
        return None


class ProfileStatus(str, Enum):
    PENDING = "pending"
    IN_CONTACT = "in_contact"
    GAVE_UP = "gave_up"

    @classmethod
    def _missing_(cls, value):
        legacy = {"pendente": cls.PENDING, "em_contato": cls.IN_CONTACT, "desistiu": cls.GAVE_UP}
        if isinstance(value, str):
            return legacy.get(value.strip().lower())
        return None


@dataclass(frozen=True)
class PaymentSlot:
    week_number: int  # 1..4
    status: PaymentStatus
    amount: str
    date: str = ""  # "" = not scheduled yet
    note: str | None = None

    @property
    def locked(self) -> bool:
        return self.status == PaymentStatus.PAID

    def to_dict(self) -> dict:
        data = {
            "weekNumber": self.week_number,
            "status": self.status.value,
            "amount": self.amount,
            "date": self.date,
        }
        if self.note is not None:
            data["note"] = self.note
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PaymentSlot":
        return cls(
            week_number=int(data["weekNumber"]),
            status=PaymentStatus(data.get("status", PaymentStatus.UNPAID.value)),
            amount=str(data.get("amount", "")),
            date=data.get("date") or "",
            note=data.get("note"),
        )


@dataclass(frozen=True)
class RenewalRecord:
    previous_return_date: str
    new_return_date: str
    renewal_timestamp: str
    card_brand: str | None = None
    card_suffix: str | None = None

    def to_dict(self) -> dict:
        data = {
            "previousReturnDate": self.previous_return_date,
            "newReturnDate": self.new_return_date,
            "renewalTimestamp": self.renewal_timestamp,
        }
        if self.card_brand:
            data["cardBrand"] = self.card_brand
        if self.card_suffix:
            data["cardSuffix"] = self.card_suffix
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "RenewalRecord":
        return cls(
            previous_return_date=data.get("previousReturnDate", ""),
            new_return_date=data.get("newReturnDate", ""),
            renewal_timestamp=data.get("renewalTimestamp", ""),
            card_brand=data.get("cardBrand"),
            card_suffix=data.get("cardSuffix"),
        )


@dataclass(frozen=True)
class CustomerRecord:
    login_id: str  # usually the customer's CPF
    name: str
    total_price: str = "R$ 0,00"
    weekly_price: str = "R$ 0,00"
    password: str = ""
    car_category: str = ""
    pickup_location: str = ""
    pickup_date: str = ""  # DD/MM/YYYY HH:MM
    return_date: str = ""
    post_renewal_date: str | None = None
    card_brands: tuple[str, ...] = ()
    card_suffixes: tuple[str, ...] = ()
    original_total_price: str | None = None
    referred_by: str | None = None
    referrals: tuple[str, ...] = ()
    can_refer: bool = False
    discount_applied: bool = False
    discount_amount: str | None = None
    payments: tuple[PaymentSlot, ...] = ()
    renewal_history: tuple[RenewalRecord, ...] = ()
    active: bool = True
    inactive_reason: str | None = None
    notes: str | None = None

    def to_dict(self) -> dict:
        data = {
            "loginId": self.login_id,
            "name": self.name,
            "password": self.password,
            "carCategory": self.car_category,
            "pickupLocation": self.pickup_location,
            "totalPrice": self.total_price,
            "weeklyPrice": self.weekly_price,
            "pickupDate": self.pickup_date,
            "returnDate": self.return_date,
            "postRenewalDate": self.post_renewal_date,
            "cardBrands": list(self.card_brands),
            "cardSuffixes": list(self.card_suffixes),
            "referrals": list(self.referrals),
            "canRefer": self.can_refer,
            "discountApplied": self.discount_applied,
            "payments": [p.to_dict() for p in self.payments],
            "renewalHistory": [r.to_dict() for r in self.renewal_history],
            "active": self.active,
        }
        # optional keys are omitted rather than written as null
        optional = {
            "originalTotalPrice": self.original_total_price,
            "referredBy": self.referred_by,
            "discountAmount": self.discount_amount,
            "inactiveReason": self.inactive_reason,
            "notes": self.notes,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "CustomerRecord":
        return cls(
            login_id=str(data["loginId"]).strip(),
            name=str(data.get("name", "")),
            password=data.get("password") or "",
            car_category=data.get("carCategory") or "",
            pickup_location=data.get("pickupLocation") or "",
            total_price=data.get("totalPrice") or "R$ 0,00",
            weekly_price=data.get("weeklyPrice") or "R$ 0,00",
            pickup_date=data.get("pickupDate") or "",
            return_date=data.get("returnDate") or "",
            post_renewal_date=data.get("postRenewalDate") or None,
            card_brands=tuple(data.get("cardBrands") or ()),
            card_suffixes=tuple(data.get("cardSuffixes") or ()),
            original_total_price=data.get("originalTotalPrice"),
            referred_by=data.get("referredBy") or None,
            referrals=tuple(dict.fromkeys(data.get("referrals") or ())),
            can_refer=bool(data.get("canRefer", False)),
            discount_applied=bool(data.get("discountApplied", False)),
            discount_amount=data.get("discountAmount"),
            payments=tuple(PaymentSlot.from_dict(p) for p in data.get("payments") or ()),
            renewal_history=tuple(RenewalRecord.from_dict(r) for r in data.get("renewalHistory") or ()),
            active=data.get("active", True) is not False,
            inactive_reason=data.get("inactiveReason"),
            notes=data.get("notes"),
        )


@dataclass(frozen=True)
class PendingProfile:
    id: str
    name: str
    contact: str
    created_at: str
    status: ProfileStatus = ProfileStatus.PENDING
    login_id: str = ""
    notes: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact": self.contact,
            "loginId": self.login_id,
            "notes": self.notes,
            "createdAt": self.created_at,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PendingProfile":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            contact=data.get("contact", ""),
            login_id=data.get("loginId") or "",
            notes=data.get("notes") or "",
            created_at=data.get("createdAt", ""),
            status=ProfileStatus(data.get("status", ProfileStatus.PENDING.value)),
        )


@dataclass
class SystemSettings:
    pix_key: str = ""
    payment_day: str = "Sexta-feira"
    company_name: str = "Minha Empresa"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "SystemSettings":
        return cls(
            pix_key=data.get("pix_key", ""),
            payment_day=data.get("payment_day") or "Sexta-feira",
            company_name=data.get("company_name") or "Minha Empresa",
        )


DEFAULT_SETTINGS = SystemSettings()

PROFILE_STATUS_LABELS = {
    ProfileStatus.PENDING: "Pending",
    ProfileStatus.IN_CONTACT: "In contact",
    ProfileStatus.GAVE_UP: "Gave up",
}

PAYMENT_STATUS_LABELS = {
    PaymentStatus.PAID: "Paid",
    PaymentStatus.PENDING: "Pending",
    PaymentStatus.UNPAID: "Unpaid",
}

