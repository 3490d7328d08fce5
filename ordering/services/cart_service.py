from __future__ import annotations

import json
from dataclasses import dataclass, field, replace

from . import store
from ..errors import (
    EmptyCart,
    IngredientUnavailable,
    InvalidQuantity,
    InvalidRequest,
    ProductNotFound,
    ProductUnavailable,
)
from ..utils.money import D, round_money, Money

UNTRACKED_STOCK = 999


@dataclass(frozen=True)
class ProductRef:
    id: int
    name: str
    price: Money
    available: bool = True
    stock_quantity: int | None = None

    @classmethod
    def from_model(cls, p):
        return cls(
            id=p.id,
            name=p.name,
            price=D(p.price),
            available=p.available is not False,
            stock_quantity=p.stock_quantity,
        )

    @property
    def out_of_stock(self) -> bool:
        q = self.stock_quantity
        return q is not None and q != UNTRACKED_STOCK and q <= 0


@dataclass(frozen=True)
class ExtraIngredient:
    id: int
    name: str
    price: Money


@dataclass(frozen=True)
class CartLine:
    product: ProductRef
    quantity: int = 1
    removed_ingredients: frozenset = field(default_factory=frozenset)
    added_ingredients: tuple = ()
    special_instructions: str = ""

    def merge_key(self) -> str:
        custom = {
            "removed": sorted(self.removed_ingredients),
            "added": sorted(i.id for i in self.added_ingredients),
            "instructions": (self.special_instructions or "").strip(),
        }
        return f"{self.product.id}:{json.dumps(custom, sort_keys=True)}"

    def extras_unit_price(self) -> Money:
        return sum((D(i.price) for i in self.added_ingredients), D(0))

    def line_total(self) -> Money:
        # removed ingredients are informational only, they never change the price
        return round_money((D(self.product.price) + self.extras_unit_price()) * self.quantity)

    def snapshot(self) -> dict:
        return {
            "product_id": self.product.id,
            "product_name": self.product.name,
            "unit_price": round_money(self.product.price),
            "added_ingredients": [
                {"id": i.id, "name": i.name, "price": float(i.price)}
                for i in sorted(self.added_ingredients, key=lambda i: i.id)
            ],
            "removed_ingredients": sorted(self.removed_ingredients),
            "special_instructions": self.special_instructions or None,
            "extras_unit_price": round_money(self.extras_unit_price()),
            "quantity": self.quantity,
            "line_total": self.line_total(),
        }


@dataclass(frozen=True)
class CartSummary:
    lines: list
    subtotal: Money

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)


def merge_lines(lines) -> list[CartLine]:
    """Same product + same customizations collapse into one line; first position wins."""
    merged: dict[str, CartLine] = {}
    for line in lines:
        key = line.merge_key()
        if key in merged:
            prev = merged[key]
            merged[key] = replace(prev, quantity=prev.quantity + line.quantity)
        else:
            merged[key] = line
    return list(merged.values())


def _check_line(line: CartLine):
    q = line.quantity
    if isinstance(q, bool) or not isinstance(q, int) or q < 1:
        raise InvalidQuantity(line.product.name, q)
    if not line.product.available:
        raise ProductUnavailable(line.product.name)
    if line.product.out_of_stock:
        raise ProductUnavailable(line.product.name, "is sold out")


def aggregate(lines) -> CartSummary:
    lines = list(lines or [])
    if not lines:
        raise EmptyCart()
    for line in lines:
        _check_line(line)

    merged = merge_lines(lines)
    subtotal = sum((line.line_total() for line in merged), D(0))
    return CartSummary(lines=merged, subtotal=round_money(subtotal))


# ---- request payload -> CartLine -------------------------------------------

def _as_int(v, what):
    if isinstance(v, bool) or (isinstance(v, float) and not v.is_integer()):
        raise InvalidRequest(f"{what} must be an integer id.", {"value": v})
    try:
        return int(v)
    except (TypeError, ValueError):
        raise InvalidRequest(f"{what} must be an integer id.", {"value": v})


def _list_field(entry, name) -> list:
    value = entry.get(name)
    if value is None:
        return []
    if not isinstance(value, list):
        raise InvalidRequest(f"{name} must be a list.", {name: value})
    return value


def _extra_ids(raw) -> list[int]:
    ids = []
    for entry in raw:
        ref = entry.get("id") if isinstance(entry, dict) else entry
        ids.append(_as_int(ref, "added ingredient"))
    return ids


def _instructions(entry) -> str:
    value = entry.get("special_instructions")
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidRequest("special_instructions must be text.", {"special_instructions": value})
    return value.strip()


def resolve_lines(payload_lines) -> list[CartLine]:
    """
    Body lines: {product_id, quantity, removed_ingredients: [str],
    added_ingredients: [id | {id}], special_instructions}.
    Prices come from the catalog; any price the client sends is ignored.
    """
    if not isinstance(payload_lines, list):
        raise InvalidRequest("lines must be a list.")
    if not payload_lines:
        raise EmptyCart()

    raw = []
    for entry in payload_lines:
        if not isinstance(entry, dict):
            raise InvalidRequest("each line must be an object.")
        raw.append((entry, _as_int(entry.get("product_id"), "product_id"), _extra_ids(_list_field(entry, "added_ingredients"))))

    products = store.products_by_id(pid for _, pid, _ in raw)
    ingredients = store.ingredients_by_id(i for _, _, extras in raw for i in extras)

    lines = []
    for entry, pid, extras in raw:
        product = products.get(pid)
        if product is None:
            raise ProductNotFound(pid)

        added = []
        for iid in dict.fromkeys(extras):
            ing = ingredients.get(iid)
            if ing is None or ing.available is False:
                raise IngredientUnavailable(ing.name if ing else iid)
            added.append(ExtraIngredient(id=ing.id, name=ing.name, price=D(ing.extra_price)))

        qty = entry.get("quantity", 1)
        if not isinstance(qty, int) or isinstance(qty, bool):
            try:
                qty = int(str(qty))
            except ValueError:
                raise InvalidQuantity(product.name, qty)

        removed = _list_field(entry, "removed_ingredients")
        if any(not isinstance(r, str) for r in removed):
            raise InvalidRequest("removed_ingredients must be a list of ingredient names.", {"removed_ingredients": removed})
        lines.append(CartLine(
            product=ProductRef.from_model(product),
            quantity=qty,
            removed_ingredients=frozenset(r.strip() for r in removed if r.strip()),
            added_ingredients=tuple(added),
            special_instructions=_instructions(entry),
        ))
    return lines
