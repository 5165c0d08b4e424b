"""
Pydantic models for master data supplied by the master-data store.

Records are validated from plain dicts; both snake_case and the store's camelCase keys
(customerCode, productName, boxPack, minQty, ...) are accepted.
"""
from pydantic import BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List

from .processors.text.normalizer import normalize_product_name, split_product

_MASTER_CONFIG = {
    "alias_generator": to_camel,
    "populate_by_name": True,
    "extra": "ignore",
}


class MasterCustomer(BaseModel):
    """Customer (pharmacy) master record."""
    customer_code: str
    customer_name: str
    address1: Optional[str] = None
    address2: Optional[str] = None
    address3: Optional[str] = None
    city: Optional[str] = None
    pin_code: Optional[str] = None
    state: Optional[str] = None
    gst_no: Optional[str] = None
    phone: Optional[str] = None

    model_config = _MASTER_CONFIG

    @property
    def code(self) -> str:
        return self.customer_code

    @property
    def name(self) -> str:
        return self.customer_name


class MasterProduct(BaseModel):
    """
    Product master record.

    base_name, dosage, variant and cleaned_product_name are derived from product_name
    when the store did not provide them.
    """
    product_code: str
    product_name: str
    division: Optional[str] = None
    pack: Optional[str] = None
    box_pack: int = 0
    base_name: Optional[str] = None
    dosage: Optional[str] = None
    variant: Optional[str] = None
    cleaned_product_name: Optional[str] = None

    model_config = _MASTER_CONFIG

    @model_validator(mode="after")
    def derive_name_parts(self) -> "MasterProduct":
        parts = split_product(self.product_name)
        if not self.base_name:
            self.base_name = parts.name
        if not self.dosage:
            self.dosage = parts.strength
        if not self.variant:
            self.variant = parts.variant
        if not self.cleaned_product_name:
            self.cleaned_product_name = normalize_product_name(self.product_name)
        return self

    @property
    def code(self) -> str:
        return self.product_code

    @property
    def name(self) -> str:
        return self.product_name


class SchemeSlab(BaseModel):
    """Quantity tier of a promotional scheme."""
    min_qty: int
    free_qty: int
    scheme_percent: Optional[float] = None

    model_config = _MASTER_CONFIG


class Scheme(BaseModel):
    """Promotional scheme attached to one product."""
    product_code: str
    product_name: Optional[str] = None
    division: Optional[str] = None
    applicable_customers: List[str] = Field(default_factory=list)
    slabs: List[SchemeSlab] = Field(default_factory=list)
    is_active: bool = True

    model_config = _MASTER_CONFIG
