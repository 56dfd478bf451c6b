from datetime import datetime
from decimal import Decimal
from typing import ClassVar, List, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from services.inventory_service.errors import ErrorKind, StepResult

PayloadT = TypeVar("PayloadT", bound="Payload")

# Range of the 32-bit Integer stock column
STOCK_MIN = -(2**31)
STOCK_MAX = 2**31 - 1


class Payload(BaseModel):
    """Caller input where an empty string means the field was not sent."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    REQUIRED: ClassVar[Tuple[str, ...]] = ()

    @field_validator("*", mode="before")
    @classmethod
    def _empty_string_is_absent(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def missing_fields(self) -> List[str]:
        return [name for name in self.REQUIRED if getattr(self, name) is None]


class ProductCreate(Payload):
    """Input for creating a product together with its opening purchase."""

    REQUIRED: ClassVar[Tuple[str, ...]] = ("name", "price", "seller")

    name: Optional[str] = Field(default=None, max_length=255)
    price: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    seller: Optional[str] = None
    stock: Optional[int] = Field(default=None, ge=0, le=STOCK_MAX)
    description: Optional[str] = Field(default=None, max_length=1000)
    category: Optional[str] = None
    brand: Optional[str] = None

    @property
    def opening_stock(self) -> int:
        return self.stock if self.stock is not None else 0


class StockAddition(Payload):
    """Input for adding stock. The delta is not sign-checked."""

    REQUIRED: ClassVar[Tuple[str, ...]] = ("seller", "stock")

    seller: Optional[str] = None
    stock: Optional[int] = Field(default=None, ge=STOCK_MIN, le=STOCK_MAX)


def parse_payload(model: Type[PayloadT], payload: Union[PayloadT, dict]) -> StepResult[PayloadT]:
    """Validate a raw payload into a typed model, reporting missing fields first."""
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(exclude_unset=True)
    try:
        parsed = model.model_validate(payload)
    except ValidationError as exc:
        problems = ", ".join(
            f"{'.'.join(str(part) for part in err['loc'])} ({err['msg']})" for err in exc.errors()
        )
        return StepResult.failure(ErrorKind.INVALID_FIELD, f"Invalid fields: {problems}", cause=exc)

    missing = parsed.missing_fields()
    if missing:
        return StepResult.failure(ErrorKind.MISSING_FIELD, f"Missing required fields: {', '.join(missing)}")
    return StepResult.success(parsed)


class ProductRead(BaseModel):
    """Product as returned to callers."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    price: Decimal
    stock: int
    seller_id: str
    category_id: Optional[str] = None
    brand_id: Optional[str] = None
    user_id: str
    created_at: datetime
    updated_at: datetime


class PurchaseRead(BaseModel):
    """Ledger entry as returned to callers."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    seller_id: str
    product_id: str
    seller_name: str
    product_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    created_at: datetime


class ProductQuery(BaseModel):
    """Filters for listing a user's products."""

    search: Optional[str] = None
    seller: Optional[str] = None
    category: Optional[str] = None
    brand: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)


class ProductPage(BaseModel):
    """One page of products and the unpaged total."""

    data: List[ProductRead]
    total_count: int


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str
    service: str
    version: str
