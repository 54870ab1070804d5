import base64
import binascii
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel

from libs.common.datetime_utils import club_today
from services.enrollment_service.clubs import normalize_club_code
from services.enrollment_service.models.enums import (
    MemberRole,
    MembershipCategory,
    MemberType,
    SpecialtyMembership,
)

# Legacy forms send "N" when no gender was chosen
_GENDER_PLACEHOLDER = "N"


class CamelModel(BaseModel):
    """Accepts both snake_case and the legacy camelCase JSON keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PersonBase(CamelModel):
    first_name: str = Field(..., min_length=1, max_length=40)
    middle_initial: str = Field(default="", max_length=1)
    last_name: str = Field(..., min_length=1, max_length=40)
    date_of_birth: date
    gender: str = Field(default="", max_length=1)
    email: Optional[EmailStr] = None
    cell_phone: str = ""
    home_phone: str = ""
    work_phone: str = ""

    @field_validator("first_name", "last_name", "middle_initial", mode="before")
    @classmethod
    def strip_names(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def stored_gender(self) -> str:
        """Gender as written to the store (placeholder becomes blank)."""
        return "" if self.gender == _GENDER_PLACEHOLDER else self.gender


class FamilyMember(PersonBase):
    member_type: MemberType

    @property
    def role(self) -> MemberRole:
        """Billing role is always derived from the member type."""
        if self.member_type == MemberType.ADULT:
            return MemberRole.SECONDARY
        return MemberRole.DEPENDENT


class Guardian(PersonBase):
    email: EmailStr
    relationship: str = ""


class ServiceAddon(CamelModel):
    """Catalog add-on (service or child program). Immutable once fetched."""

    model_config = ConfigDict(frozen=True)

    description: str = Field(validation_alias=AliasChoices("description", "invtr_desc"))
    price: Decimal = Field(
        ge=0, validation_alias=AliasChoices("price", "invtr_price")
    )
    upc_code: str = Field(
        validation_alias=AliasChoices("upcCode", "upc_code", "invtr_upccode")
    )
    tax_code: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("taxCode", "tax_code")
    )


class PersonalTrainingPackage(CamelModel):
    model_config = ConfigDict(frozen=True)

    description: str = Field(
        default="New Intro Personal Training Package",
        validation_alias=AliasChoices("description", "invtr_desc"),
    )
    price: Decimal = Field(ge=0, validation_alias=AliasChoices("price", "invtr_price"))
    upc_code: str = Field(
        validation_alias=AliasChoices("upcCode", "upc_code", "invtr_upccode")
    )


class PaymentSummary(CamelModel):
    """What the workflow needs from the payment gateway result."""

    processor: str = ""
    transaction_id: str = ""
    approval_code: str = ""
    card_brand: str = ""
    masked_card: str = ""
    exp_date: str = ""  # MMYY
    card_holder: str = ""
    token: str = ""
    amount_billed: Decimal = Decimal("0")


class EnrollmentRequest(PersonBase):
    email: EmailStr
    address: str = Field(..., min_length=1)
    address2: str = ""
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=2, max_length=2)
    zip_code: str = Field(..., pattern=r"^\d{5}(-\d{4})?$")

    requested_start_date: Optional[date] = None
    club: str
    membership_type: MembershipCategory = MembershipCategory.INDIVIDUAL
    specialty_membership: SpecialtyMembership = SpecialtyMembership.STANDARD
    # Quoted on the enrollment page; looked up from the catalog when absent
    monthly_dues: Optional[Decimal] = Field(default=None, ge=0)

    family_members: list[FamilyMember] = Field(default_factory=list)
    guardian: Optional[Guardian] = None
    payment: PaymentSummary = Field(default_factory=PaymentSummary)
    service_addons: list[ServiceAddon] = Field(default_factory=list)
    child_addons: list[ServiceAddon] = Field(default_factory=list)
    pt_package: Optional[PersonalTrainingPackage] = None
    contract_pdf: Optional[bytes] = Field(default=None, repr=False)

    @field_validator("club", mode="before")
    @classmethod
    def normalize_club(cls, v: Any) -> str:
        return normalize_club_code(v)

    @field_validator("requested_start_date", mode="before")
    @classmethod
    def blank_start_date_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("requested_start_date")
    @classmethod
    def start_date_not_in_past(cls, v: Optional[date]) -> Optional[date]:
        if v is not None and v < club_today():
            raise ValueError("Requested start date cannot be in the past")
        return v

    @field_validator("contract_pdf", mode="before")
    @classmethod
    def decode_contract_pdf(cls, v: Any) -> Any:
        """Accept base64 text, a list of byte values, or an index→byte object."""
        if v is None or isinstance(v, bytes):
            return v
        if isinstance(v, str):
            if not v:
                return None
            try:
                return base64.b64decode(v, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise ValueError("contractPdf must be base64 encoded") from exc
        try:
            if isinstance(v, dict):
                v = [v[k] for k in sorted(v, key=lambda k: int(k))]
            if isinstance(v, list):
                return bytes(v)
        except (TypeError, ValueError) as exc:
            raise ValueError("Unsupported contractPdf encoding") from exc
        raise ValueError("Unsupported contractPdf encoding")

    @property
    def adults(self) -> list[FamilyMember]:
        return [m for m in self.family_members if m.role == MemberRole.SECONDARY]

    @property
    def dependents(self) -> list[FamilyMember]:
        return [m for m in self.family_members if m.role == MemberRole.DEPENDENT]

    @property
    def business_name(self) -> str:
        """``FIRST MI. LAST`` in upper case, as the store indexes memberships."""
        middle = f"{self.middle_initial.upper()}. " if self.middle_initial else ""
        return f"{self.first_name.upper()} {middle}{self.last_name.upper()}".strip()

    @property
    def primary_phone(self) -> str:
        return self.cell_phone or self.home_phone or self.work_phone or ""


class QuoteRequest(CamelModel):
    club: str
    requested_start_date: Optional[date] = None
    membership_type: MembershipCategory = MembershipCategory.INDIVIDUAL
    specialty_membership: SpecialtyMembership = SpecialtyMembership.STANDARD
    monthly_dues: Optional[Decimal] = Field(default=None, ge=0)
    service_addons: list[ServiceAddon] = Field(default_factory=list)
    child_addons: list[ServiceAddon] = Field(default_factory=list)
    pt_package: Optional[PersonalTrainingPackage] = None

    @field_validator("club", mode="before")
    @classmethod
    def normalize_club(cls, v: Any) -> str:
        return normalize_club_code(v)
