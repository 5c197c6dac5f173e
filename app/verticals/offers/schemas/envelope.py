# app/verticals/offers/schemas/envelope.py
from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, constr

from .rates import SupplierRatesIn

NonEmptyId = constr(strip_whitespace=True, min_length=1)


class ApiResponse(BaseModel):
    """Response envelope for every read and every operation."""

    success: bool
    message: str
    data: Optional[Any] = None

    @classmethod
    def ok(cls, message: str, data: Any = None) -> "ApiResponse":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str) -> "ApiResponse":
        return cls(success=False, message=message, data=None)


class _OperationBase(BaseModel):
    model_config = ConfigDict(extra="ignore")


class AddProductRequest(_OperationBase):
    operation: Literal["add_product"]
    offer_id: NonEmptyId  # type: ignore
    product_id: NonEmptyId  # type: ignore


class UpdateItemFieldsRequest(_OperationBase):
    operation: Literal["update_item_fields"]
    offer_item_id: NonEmptyId  # type: ignore
    fields: Dict[str, Any]


class ToggleIncludedRequest(_OperationBase):
    operation: Literal["toggle_included"]
    offer_item_id: NonEmptyId  # type: ignore
    included: bool


class DuplicateItemRequest(_OperationBase):
    operation: Literal["duplicate_offer_item"]
    offer_item_id: NonEmptyId  # type: ignore
    overrides: Dict[str, Any] = Field(default_factory=dict)


class DeleteItemRequest(_OperationBase):
    operation: Literal["delete_offer_item"]
    offer_item_id: NonEmptyId  # type: ignore


class DeleteItemsRequest(_OperationBase):
    operation: Literal["delete_offer_items"]
    offer_item_ids: List[str]


class SaveOfferRequest(_OperationBase):
    operation: Literal["save_offer"]
    offer_id: NonEmptyId  # type: ignore


OperationRequest = Annotated[
    Union[
        AddProductRequest,
        UpdateItemFieldsRequest,
        ToggleIncludedRequest,
        DuplicateItemRequest,
        DeleteItemRequest,
        DeleteItemsRequest,
        SaveOfferRequest,
    ],
    Field(discriminator="operation"),
]

OPERATIONS = (
    "add_product",
    "update_item_fields",
    "toggle_included",
    "duplicate_offer_item",
    "delete_offer_item",
    "delete_offer_items",
    "save_offer",
)

ACTION_SAVE_RATES = "saveSupplierRates"
ACTION_GET_RATES = "getCRMData"


class SaveSupplierRatesRequest(_OperationBase):
    action: Literal["saveSupplierRates"]
    rates: SupplierRatesIn
