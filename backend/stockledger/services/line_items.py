# Overview: Line item variants (standard / bundle / custom), request parsing, totals and persistence.

"""
Line items are a tagged variant:

- StandardLineItem: a standard product; deducts/restocks that product.
- BundleLineItem:   a bundle product; deducts/restocks each component
                    (quantity_per_bundle * line quantity). The component list
                    is snapshotted when the line is written.
- CustomLineItem:   free text (service fee, ...); its ref starts with
                    "custom-" and it never touches stock.

Requests are parsed into these dataclasses before any mutation, and they are
stored as normalized DocumentLineItem / LineItemComponent rows.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import ClassVar, Iterable, Union

from ..errors import NotFound, ValidationError
from ..models import DocumentLineItem, LineItemComponent, Product
from ..models.sales import LINE_KIND_BUNDLE, LINE_KIND_CUSTOM, LINE_KIND_STANDARD
from .products_service import get_product


CUSTOM_PREFIX = "custom-"


@dataclass(frozen=True)
class ComponentSnapshot:
    sub_product_id: int
    sub_product_name: str
    sub_product_sku: str | None
    quantity: int


@dataclass(frozen=True, kw_only=True)
class _LineItemBase:
    kind: ClassVar[str]

    line_ref: str
    description: str
    quantity: int
    unit_price_cents: int
    discount_cents: int = 0
    warranty_period_value: int | None = None
    warranty_period_unit: str | None = None

    @property
    def total_cents(self) -> int:
        return self.quantity * self.unit_price_cents - self.discount_cents


@dataclass(frozen=True, kw_only=True)
class StandardLineItem(_LineItemBase):
    kind: ClassVar[str] = LINE_KIND_STANDARD
    product_id: int


@dataclass(frozen=True, kw_only=True)
class BundleLineItem(_LineItemBase):
    kind: ClassVar[str] = LINE_KIND_BUNDLE
    product_id: int
    components: tuple[ComponentSnapshot, ...]


@dataclass(frozen=True, kw_only=True)
class CustomLineItem(_LineItemBase):
    kind: ClassVar[str] = LINE_KIND_CUSTOM
    product_id: ClassVar[None] = None


LineItem = Union[StandardLineItem, BundleLineItem, CustomLineItem]


@dataclass(frozen=True)
class DocumentTotals:
    subtotal_cents: int
    delivery_charge_cents: int
    discount_cents: int
    total_cents: int


def _new_ref(prefix: str = "") -> str:
    return f"{prefix}{uuid.uuid4().hex[:12]}"


def _int_field(raw: dict, key: str, *, default=None, minimum: int = 0, label: str = "") -> int:
    value = raw.get(key, default)
    if value is None:
        raise ValidationError(f"{label}{key} is required")
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{label}{key} must be an integer")
    if value < minimum:
        raise ValidationError(f"{label}{key} must be >= {minimum}")
    return value


def _is_custom_ref(product_ref) -> bool:
    return product_ref is None or (isinstance(product_ref, str) and product_ref.startswith(CUSTOM_PREFIX))


def snapshot_components(bundle: Product) -> tuple[ComponentSnapshot, ...]:
    if not bundle.components:
        raise ValidationError(f"Bundle {bundle.name} has no components")
    return tuple(
        ComponentSnapshot(
            sub_product_id=c.sub_product_id,
            sub_product_name=c.sub_product.name,
            sub_product_sku=c.sub_product.sku,
            quantity=c.quantity,
        )
        for c in bundle.components
    )


def build_product_line(
    product: Product,
    *,
    quantity: int,
    unit_price_cents: int | None = None,
    discount_cents: int = 0,
    description: str | None = None,
    line_ref: str | None = None,
    warranty_period_value: int | None = None,
    warranty_period_unit: str | None = None,
) -> LineItem:
    common = dict(
        line_ref=line_ref or _new_ref(),
        description=description or product.name,
        quantity=quantity,
        unit_price_cents=product.price_cents if unit_price_cents is None else unit_price_cents,
        discount_cents=discount_cents,
        warranty_period_value=product.warranty_period_value if warranty_period_value is None else warranty_period_value,
        warranty_period_unit=warranty_period_unit or product.warranty_period_unit,
    )
    if product.is_bundle:
        return BundleLineItem(product_id=product.id, components=snapshot_components(product), **common)
    return StandardLineItem(product_id=product.id, **common)


def build_custom_line(*, description: str, quantity: int, unit_price_cents: int, discount_cents: int = 0) -> CustomLineItem:
    return CustomLineItem(
        line_ref=_new_ref(CUSTOM_PREFIX),
        description=description,
        quantity=quantity,
        unit_price_cents=unit_price_cents,
        discount_cents=discount_cents,
    )


def parse_line_items(org_id: int, payload) -> list[LineItem]:
    """
    Validate request line items and resolve their products.

    Each element: {product_id?, description?, quantity, unit_price_cents?,
    discount_cents?, id?}. A missing product_id or one starting with
    "custom-" makes a custom line, which needs a description and a price.
    Product lines default to the product's name and current price.
    """
    if not isinstance(payload, list) or not payload:
        raise ValidationError("line_items must be a non-empty list")

    items: list[LineItem] = []
    for index, raw in enumerate(payload):
        label = f"line_items[{index}]."
        if not isinstance(raw, dict):
            raise ValidationError(f"line_items[{index}] must be an object")

        quantity = _int_field(raw, "quantity", minimum=1, label=label)
        discount = _int_field(raw, "discount_cents", default=0, label=label)
        product_ref = raw.get("product_id")

        if _is_custom_ref(product_ref):
            description = (raw.get("description") or "").strip()
            if not description:
                raise ValidationError(f"{label}description is required for custom items")
            price = _int_field(raw, "unit_price_cents", label=label)
            ref = raw.get("id") if isinstance(raw.get("id"), str) and raw["id"].startswith(CUSTOM_PREFIX) else None
            item = CustomLineItem(
                line_ref=ref or (product_ref if isinstance(product_ref, str) else _new_ref(CUSTOM_PREFIX)),
                description=description,
                quantity=quantity,
                unit_price_cents=price,
                discount_cents=discount,
            )
        else:
            if isinstance(product_ref, bool) or not isinstance(product_ref, int):
                raise ValidationError(f"{label}product_id must be an integer or a custom- reference")
            product = get_product(org_id, product_ref)
            price = None
            if raw.get("unit_price_cents") is not None:
                price = _int_field(raw, "unit_price_cents", label=label)
            item = build_product_line(
                product,
                quantity=quantity,
                unit_price_cents=price,
                discount_cents=discount,
                description=(raw.get("description") or "").strip() or None,
                line_ref=str(raw["id"]) if raw.get("id") else None,
            )

        if item.total_cents < 0:
            raise ValidationError(f"{label}discount_cents exceeds the line amount")
        items.append(item)

    return items


def compute_totals(items: Iterable[LineItem], *, delivery_charge_cents: int = 0, discount_cents: int = 0) -> DocumentTotals:
    """total = sum(qty * unit price - line discount) + delivery - document discount."""
    if delivery_charge_cents < 0 or discount_cents < 0:
        raise ValidationError("delivery_charge_cents and discount_cents must be >= 0")
    subtotal = sum(item.total_cents for item in items)
    total = subtotal + delivery_charge_cents - discount_cents
    if total < 0:
        raise ValidationError("Document total cannot be negative")
    return DocumentTotals(
        subtotal_cents=subtotal,
        delivery_charge_cents=delivery_charge_cents,
        discount_cents=discount_cents,
        total_cents=total,
    )


def stock_requirements(items: Iterable[LineItem]) -> dict[int, int]:
    """Units per standard product the items consume; bundles expand to components."""
    required: dict[int, int] = {}
    for item in items:
        if isinstance(item, StandardLineItem):
            required[item.product_id] = required.get(item.product_id, 0) + item.quantity
        elif isinstance(item, BundleLineItem):
            for comp in item.components:
                required[comp.sub_product_id] = required.get(comp.sub_product_id, 0) + comp.quantity * item.quantity
    return required


def to_rows(items: Iterable[LineItem]) -> list[DocumentLineItem]:
    """Normalized rows for a document; the caller attaches them to an invoice or quotation."""
    rows = []
    for position, item in enumerate(items):
        row = DocumentLineItem(
            position=position,
            line_ref=item.line_ref,
            kind=item.kind,
            product_id=item.product_id,
            description=item.description,
            quantity=item.quantity,
            unit_price_cents=item.unit_price_cents,
            discount_cents=item.discount_cents,
            warranty_period_value=item.warranty_period_value,
            warranty_period_unit=item.warranty_period_unit,
        )
        if isinstance(item, BundleLineItem):
            row.components = [
                LineItemComponent(
                    position=i,
                    sub_product_id=c.sub_product_id,
                    sub_product_name=c.sub_product_name,
                    sub_product_sku=c.sub_product_sku,
                    quantity=c.quantity,
                )
                for i, c in enumerate(item.components)
            ]
        rows.append(row)
    return rows


def from_row(row: DocumentLineItem) -> LineItem:
    """Rebuild the variant exactly as it was stored (component snapshot included)."""
    common = dict(
        line_ref=row.line_ref,
        description=row.description,
        quantity=row.quantity,
        unit_price_cents=row.unit_price_cents,
        discount_cents=row.discount_cents or 0,
        warranty_period_value=row.warranty_period_value,
        warranty_period_unit=row.warranty_period_unit,
    )
    if row.kind == LINE_KIND_BUNDLE:
        return BundleLineItem(
            product_id=row.product_id,
            components=tuple(
                ComponentSnapshot(
                    sub_product_id=c.sub_product_id,
                    sub_product_name=c.sub_product_name,
                    sub_product_sku=c.sub_product_sku,
                    quantity=c.quantity,
                )
                for c in row.components
            ),
            **common,
        )
    if row.kind == LINE_KIND_STANDARD:
        return StandardLineItem(product_id=row.product_id, **common)
    return CustomLineItem(**common)


def refresh_from_row(org_id: int, row: DocumentLineItem) -> LineItem:
    """
    Rebuild a stored line against the current catalog.

    Price, quantity, discount and description stay as stored; the product
    must still exist and a bundle takes its current component list. Used
    when a quotation is converted long after it was drafted.
    """
    if row.kind == LINE_KIND_CUSTOM or row.product_id is None:
        return from_row(row)
    try:
        product = get_product(org_id, row.product_id)
    except NotFound:
        raise NotFound(f"Product {row.product_id} on line '{row.description}' no longer exists")
    return build_product_line(
        product,
        quantity=row.quantity,
        unit_price_cents=row.unit_price_cents,
        discount_cents=row.discount_cents or 0,
        description=row.description,
        line_ref=row.line_ref,
        warranty_period_value=row.warranty_period_value,
        warranty_period_unit=row.warranty_period_unit,
    )
