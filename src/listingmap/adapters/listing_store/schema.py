"""Pydantic models describing the listing store wire format."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class ListingStoreBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ListingDocument(ListingStoreBaseModel):
    id: str | None = None
    status: str
    lat: float | None = None
    lng: float | None = None
    owner_id: str | None = Field(default=None, alias="userId")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")
    title: str | None = None
    vendor: str | None = None
    price: float | str | None = None
    city: str | None = None
    description: str | None = None
    rejection_reason: str | None = Field(default=None, alias="rejectionReason")
    flag_reason: str | None = Field(default=None, alias="flagReason")

    _normalize_text = field_validator(
        "id", "owner_id", "title", "vendor", "city", "description", mode="before"
    )(_blank_to_none)

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    def display_fields(self) -> dict[str, object]:
        fields = {
            "title": self.title,
            "vendor": self.vendor,
            "price": self.price,
            "city": self.city,
            "description": self.description,
            "rejectionReason": self.rejection_reason,
            "flagReason": self.flag_reason,
        }
        return {key: value for key, value in fields.items() if value is not None}


class DocumentListResponse(ListingStoreBaseModel):
    documents: list[ListingDocument] = Field(default_factory=list[ListingDocument])


class DocumentChangePayload(ListingStoreBaseModel):
    doc_id: str = Field(alias="docId")
    change_kind: str = Field(alias="changeKind")
    data: ListingDocument | None = None
    update_time: datetime | None = Field(default=None, alias="updateTime")


class SnapshotBatchPayload(ListingStoreBaseModel):
    changes: list[DocumentChangePayload] = Field(default_factory=list[DocumentChangePayload])
    from_cache: bool = Field(default=False, alias="fromCache")


class VendorCategoryItem(ListingStoreBaseModel):
    key: str
    color: str
    icon: str
    name: str | None = None
    is_active: bool = Field(default=True, alias="isActive")


class VendorCategoriesDocument(ListingStoreBaseModel):
    items: list[VendorCategoryItem] = Field(default_factory=list[VendorCategoryItem])


__all__ = [
    "DocumentChangePayload",
    "DocumentListResponse",
    "ListingDocument",
    "SnapshotBatchPayload",
    "VendorCategoriesDocument",
    "VendorCategoryItem",
]
