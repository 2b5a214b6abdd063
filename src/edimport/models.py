"""Pydantic data models for decoded EDI records."""

from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from edimport.codes import Category, Language, Operation, Ownership

# Keys carried by the snapshot map itself or by its file name.
_SNAPSHOT_EXCLUDE = {"category", "identifier", "language"}


class EdiDate(BaseModel):
    """Calendar date as delivered, not validated beyond its split."""

    model_config = {"populate_by_name": True}

    year: str = Field(..., alias="y")
    month: str = Field(..., alias="m")
    day: str = Field(..., alias="d")

    def as_timestamp(self) -> str:
        return f"{self.year}-{self.month}-{self.day} 00:00:00.000"


class PartyIdentity(BaseModel):
    """Trading party read from a header line."""

    model_config = {"frozen": True}

    ownership: Ownership
    id: str
    code: str

    def party_dir(self, root: Path) -> Path:
        """Home directory of the party, `root/{sellers|buyers}/{id}`."""
        return root / self.ownership.dir_name / self.id


class ProductRecord(BaseModel):
    """Catalog entry of one product in one language."""

    model_config = {"populate_by_name": True}

    category: Category = Category.UNSET
    identifier: str = ""
    operation: Operation = Field(Operation.EMPTY, alias="op")
    language: Language = Language.FIN
    date: EdiDate
    name: str
    description: str = Field("", alias="name2")
    search_tags: Optional[str] = Field(None, alias="tag")
    search_code: Optional[str] = Field(None, alias="ref")
    discount_group: Optional[str] = Field(None, alias="disc")
    unit: str
    unit_weight: Optional[float] = Field(None, alias="weight")
    unit_volume: Optional[float] = Field(None, alias="vol")
    typical_packaging: Optional[int] = Field(None, alias="pkg")
    packaging_1: Optional[float] = Field(None, alias="p1")
    packaging_1_discount: Optional[float] = Field(None, alias="p1d")
    packaging_2: Optional[float] = Field(None, alias="p2")
    packaging_2_discount: Optional[float] = Field(None, alias="p2d")
    packaging_3: Optional[float] = Field(None, alias="p3")
    packaging_3_discount: Optional[float] = Field(None, alias="p3d")
    tax_class: Optional[str] = Field(None, alias="tax")
    delivery_in_weeks: Optional[int] = Field(None, alias="delay")
    stock_item: bool = Field(True, alias="stock")
    ean_code: Optional[str] = Field(None, alias="ean")
    usage_unit: Optional[str] = Field(None, alias="i")
    usables_in_unit: float = Field(0.0, alias="ix")

    def snapshot_payload(self) -> dict[str, Any]:
        return self.model_dump(
            mode="json", by_alias=True, exclude=_SNAPSHOT_EXCLUDE, exclude_none=True
        )


class PriceRecord(BaseModel):
    """Price list entry of one product."""

    model_config = {"populate_by_name": True}

    category: Category = Category.UNSET
    identifier: str = ""
    price_group: str = Field(..., alias="group")
    price: float
    date: EdiDate
    discount_group: str = Field(..., alias="disc")
    unit: str
    units_incl: int = Field(0, alias="incl")
    packaging_1: Optional[float] = Field(None, alias="p1")
    packaging_1_discount: Optional[float] = Field(None, alias="p1d")
    packaging_2: Optional[float] = Field(None, alias="p2")
    packaging_2_discount: Optional[float] = Field(None, alias="p2d")
    packaging_3: Optional[float] = Field(None, alias="p3")
    packaging_3_discount: Optional[float] = Field(None, alias="p3d")
    usage_unit: Optional[str] = Field(None, alias="i")
    usables_in_unit: float = Field(0.0, alias="ix")
    stock_item: bool = Field(True, alias="stock")
    delivery_in_weeks: Optional[int] = Field(None, alias="delay")

    def snapshot_payload(self) -> dict[str, Any]:
        return self.model_dump(
            mode="json", by_alias=True, exclude=_SNAPSHOT_EXCLUDE, exclude_none=True
        )


class DiscountRecord(BaseModel):
    """Buyer specific discount for one discount group."""

    model_config = {"populate_by_name": True}

    discount_group: str = Field(..., alias="disc")
    identifier: str = Field("", alias="id")
    name: str = ""
    price_group: str = Field(..., alias="group")
    percent_1: float = Field(..., alias="pc1")
    percent_2: float = Field(..., alias="pc2")

    def snapshot_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
