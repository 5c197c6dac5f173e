from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

from app.verticals.offers.domain.formatting import parse_boolean

D = Decimal

# =============================================================================
# Sheets + columns (header names are the storage contract)
# =============================================================================

SHEET_OFFERS = "Offers"
SHEET_ITEMS = "OfferItems"
SHEET_PRODUCTS = "Products"
SHEET_SUPPLIERS = "Suppliers"
SHEET_CONFIG = "Config"
SHEET_TRANSPORT = "TransportConfig"

COL_OFFER_ID = "Offer ID"
COL_SUBJECT = "Subject"
COL_VALID_UNTIL = "Valid Until"
COL_CONTACT = "Contact Name"
COL_ASSIGNED_TO = "Assigned To"
COL_CUSTOMER = "Customer Name"
COL_CURRENCY = "Currency"

COL_ITEM_ID = "Offer Item ID"
COL_PRODUCT_ID = "Product ID"
COL_QTY_FROM = "Quantity Unit From"
COL_UNIT = "Unit"
COL_ACTUAL_QTY = "Actual Quantity"
COL_SHIPS = "Number Ships"
COL_PURCHASE_CURRENCY = "Purchase Currency"
COL_SELLING_CURRENCY = "Selling Currency"
COL_OFFERED_PRICE = "Offered Price"
COL_PURCHASE_PRICE = "Purchase Price"
COL_INCLUDED = "Included"
COL_MARKUP = "Markup %"
COL_INCOTERM_SUPPLIER = "Incoterms Supplier"
COL_INCOTERM_AV = "Incoterms A V"
COL_TRANSPORT_COST = "Transportation Cost Per Quantity"
COL_FINAL_PRICE = "Final Price On Offer"
COL_COMMENT = "Comment"
COL_COMMENT_AUTO = "Comment Auto"
COL_PRICE_VALIDITY = "Price Validity"
COL_CREATED_BY = "Created By"
COL_CREATED_TIME = "Created Time"
COL_MODIFIED_BY = "Modified By"
COL_MODIFIED_TIME = "Modified Time"

COL_PRODUCT_NAME = "Product Name"
COL_CATEGORY = "Category"
COL_SUPPLIER_ID = "Supplier ID"
COL_SUPPLIER_NAME = "Supplier Name"

COL_CONFIG_ID = "Config ID"
COL_CONFIG_VALUE = "Value"
COL_CONFIG_DESCRIPTION = "Description"

COL_RATES = "Rates"

OFFER_HEADERS = [
    COL_OFFER_ID, COL_SUBJECT, COL_VALID_UNTIL, COL_CONTACT, COL_ASSIGNED_TO,
    COL_CUSTOMER, COL_CURRENCY, COL_CREATED_TIME, COL_MODIFIED_TIME,
]

ITEM_HEADERS = [
    COL_ITEM_ID, COL_OFFER_ID, COL_PRODUCT_ID, COL_QTY_FROM, COL_UNIT,
    COL_ACTUAL_QTY, COL_SHIPS, COL_PURCHASE_CURRENCY, COL_SELLING_CURRENCY,
    COL_OFFERED_PRICE, COL_PURCHASE_PRICE, COL_INCLUDED, COL_MARKUP,
    COL_INCOTERM_SUPPLIER, COL_INCOTERM_AV, COL_TRANSPORT_COST, COL_FINAL_PRICE,
    COL_COMMENT, COL_COMMENT_AUTO, COL_PRICE_VALIDITY, COL_CREATED_BY,
    COL_CREATED_TIME, COL_MODIFIED_BY, COL_MODIFIED_TIME,
]

PRODUCT_HEADERS = [COL_PRODUCT_ID, COL_PRODUCT_NAME, COL_CATEGORY, COL_SUPPLIER_ID, COL_SUPPLIER_NAME]
SUPPLIER_HEADERS = [COL_SUPPLIER_ID, COL_SUPPLIER_NAME]
CONFIG_HEADERS = [COL_CONFIG_ID, COL_CONFIG_VALUE, COL_CONFIG_DESCRIPTION]

DEFAULT_SHEETS = {
    SHEET_OFFERS: OFFER_HEADERS,
    SHEET_ITEMS: ITEM_HEADERS,
    SHEET_PRODUCTS: PRODUCT_HEADERS,
    SHEET_SUPPLIERS: SUPPLIER_HEADERS,
    SHEET_CONFIG: CONFIG_HEADERS,
}
TRANSPORT_HEADERS = [COL_RATES]

CONFIG_PRICE_VALIDITY = "Buying Price Validity"

# External field vocabulary (update_item_fields) -> column name. Fixed wire contract.
FIELD_MAP: Dict[str, str] = {
    "markup": COL_MARKUP,
    "selling_currency": COL_SELLING_CURRENCY,
    "number_ships": COL_SHIPS,
    "comment": COL_COMMENT,
    "incoterm_supplier": COL_INCOTERM_SUPPLIER,
    "incoterm_av": COL_INCOTERM_AV,
    "transport_cost": COL_TRANSPORT_COST,
    # system-managed comment tag (written alongside auto-generated comments)
    "comment_auto": COL_COMMENT_AUTO,
}
COLUMN_TO_FIELD: Dict[str, str] = {v: k for k, v in FIELD_MAP.items()}

# add_product creates one tier per threshold
TIER_THRESHOLDS = (25, 100, 500)


def to_decimal(value: Any, default: D = D("0")) -> D:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return D(int(value))
    try:
        d = D(str(value).strip().replace(",", "."))
    except InvalidOperation:
        return default
    # NaN / Infinity cells fall back too (open rate tiers pass Infinity as default)
    return d if d.is_finite() else default


# =============================================================================
# Reference data
# =============================================================================


@dataclass(frozen=True)
class Offer:
    offer_id: str
    subject: str = ""
    customer_name: str = ""
    assigned_to: str = ""
    valid_until: str = ""
    currency: str = "EUR"

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Offer":
        return cls(
            offer_id=str(row.get(COL_OFFER_ID) or ""),
            subject=str(row.get(COL_SUBJECT) or ""),
            customer_name=str(row.get(COL_CUSTOMER) or ""),
            assigned_to=str(row.get(COL_ASSIGNED_TO) or ""),
            valid_until=str(row.get(COL_VALID_UNTIL) or ""),
            currency=str(row.get(COL_CURRENCY) or "EUR"),
        )


@dataclass(frozen=True)
class Product:
    product_id: str
    name: str
    category: str = ""
    supplier_id: str = ""
    supplier_name: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Product":
        return cls(
            product_id=str(row.get(COL_PRODUCT_ID) or ""),
            name=str(row.get(COL_PRODUCT_NAME) or ""),
            category=str(row.get(COL_CATEGORY) or ""),
            supplier_id=str(row.get(COL_SUPPLIER_ID) or ""),
            supplier_name=str(row.get(COL_SUPPLIER_NAME) or ""),
        )


@dataclass(frozen=True)
class ConfigEntry:
    key: str
    value: str
    description: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ConfigEntry":
        return cls(
            key=str(row.get(COL_CONFIG_ID) or ""),
            value=str(row.get(COL_CONFIG_VALUE) or ""),
            description=str(row.get(COL_CONFIG_DESCRIPTION) or ""),
        )


# =============================================================================
# Offer item (tier)
# =============================================================================


@dataclass(frozen=True)
class OfferItem:
    """
    Typed snapshot of an OfferItems row, used by the calculators.
    markup is a fraction (0.15 = 15%).
    """

    item_id: str
    offer_id: str
    product_id: str
    quantity_from: D = D("0")
    actual_quantity: D = D("0")
    unit: str = "kg"
    number_ships: D = D("1")
    purchase_price: D = D("0")
    purchase_currency: str = "EUR"
    selling_currency: str = "EUR"
    markup: D = D("0")
    included: bool = True
    incoterm_supplier: str = ""
    incoterm_av: str = ""
    comment: str = ""
    comment_auto: Optional[bool] = None
    price_validity: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "OfferItem":
        auto_raw = row.get(COL_COMMENT_AUTO)
        return cls(
            item_id=str(row.get(COL_ITEM_ID) or ""),
            offer_id=str(row.get(COL_OFFER_ID) or ""),
            product_id=str(row.get(COL_PRODUCT_ID) or ""),
            quantity_from=to_decimal(row.get(COL_QTY_FROM)),
            actual_quantity=to_decimal(row.get(COL_ACTUAL_QTY)),
            unit=str(row.get(COL_UNIT) or "kg"),
            number_ships=to_decimal(row.get(COL_SHIPS), D("1")),
            purchase_price=to_decimal(row.get(COL_PURCHASE_PRICE)),
            purchase_currency=str(row.get(COL_PURCHASE_CURRENCY) or "EUR"),
            selling_currency=str(row.get(COL_SELLING_CURRENCY) or "EUR"),
            markup=to_decimal(row.get(COL_MARKUP)),
            included=parse_boolean(row.get(COL_INCLUDED)),
            incoterm_supplier=str(row.get(COL_INCOTERM_SUPPLIER) or ""),
            incoterm_av=str(row.get(COL_INCOTERM_AV) or ""),
            comment=str(row.get(COL_COMMENT) or ""),
            # None = row predates the tag column (or never set)
            comment_auto=None if auto_raw in (None, "") else parse_boolean(auto_raw),
            price_validity=str(row.get(COL_PRICE_VALIDITY) or ""),
        )


# =============================================================================
# Rate tables
# =============================================================================


@dataclass(frozen=True)
class RateTier:
    from_weight: D
    to_weight: D
    cost: D


@dataclass(frozen=True)
class RateTable:
    party: str
    tiers: List[RateTier] = field(default_factory=list)
    validity: str = ""


RateTables = Dict[str, RateTable]
