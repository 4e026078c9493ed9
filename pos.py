"""
pos.py
Retail products and the point-of-sale cart.
"""

from __future__ import annotations

import logging
from datetime import datetime

import db
import finance
from models import POS_CATEGORY, CartItem, Product

logger = logging.getLogger(__name__)


def product_from_row(r) -> Product:
    stock = r["stock_quantity"]
    return Product(
        id=r["id"],
        name=r["name"],
        price=float(r["price"]),
        stock_quantity=int(stock) if stock is not None else None,
    )


def fetch_products(search: str = "") -> list[Product]:
    products = [product_from_row(r) for r in db.fetch_all("SELECT * FROM products ORDER BY name ASC")]
    if search.strip():
        needle = search.strip().lower()
        products = [p for p in products if needle in p.name.lower()]
    return products


def save_product(name: str, price: float, stock_quantity: int | None, product_id: int | None = None) -> int:
    if product_id:
        db.execute(
            "UPDATE products SET name=?, price=?, stock_quantity=? WHERE id=?",
            (name.strip(), float(price), stock_quantity, product_id),
        )
        return product_id
    return db.execute(
        "INSERT INTO products(name, price, stock_quantity, created_at) VALUES(?,?,?,?)",
        (name.strip(), float(price), stock_quantity, db.now_iso()),
    )


def delete_product(product_id: int) -> None:
    db.execute("DELETE FROM products WHERE id = ?", (product_id,))


# ---------- Cart ----------

def _fits_stock(product: Product, quantity: int) -> bool:
    return product.stock_quantity is None or quantity <= product.stock_quantity


def add_to_cart(cart: list[CartItem], product: Product) -> list[CartItem]:
    for item in cart:
        if item.product.id == product.id:
            if _fits_stock(product, item.quantity + 1):
                item.quantity += 1
            return cart
    if _fits_stock(product, 1):
        cart.append(CartItem(product=product, quantity=1))
    return cart


def update_quantity(cart: list[CartItem], product_id: int, delta: int) -> list[CartItem]:
    """Change a line by delta; never drops below 1 nor goes past the stock."""
    for item in cart:
        if item.product.id == product_id:
            new_qty = item.quantity + delta
            if new_qty > 0 and _fits_stock(item.product, new_qty):
                item.quantity = new_qty
    return cart


def remove_from_cart(cart: list[CartItem], product_id: int) -> list[CartItem]:
    return [item for item in cart if item.product.id != product_id]


def cart_total(cart: list[CartItem]) -> float:
    return round(sum(item.product.price * item.quantity for item in cart), 2)


def checkout(cart: list[CartItem], sold_at: datetime | None = None) -> int:
    """
    Book the sale as one paid income entry and take the items out of stock,
    in a single transaction. Stock is checked against the database, not the
    cart, so a stale cart cannot oversell.
    """
    if not cart:
        raise ValueError("Cart is empty.")
    sold_at = sold_at or datetime.now()
    summary = ", ".join(f"{item.quantity}x {item.product.name}" for item in cart)

    with db.get_conn() as conn:
        for item in cart:
            row = conn.execute(
                "SELECT stock_quantity FROM products WHERE id = ?", (item.product.id,)
            ).fetchone()
            if row is None:
                raise LookupError(f"Product {item.product.name} no longer exists.")
            if row["stock_quantity"] is not None and row["stock_quantity"] < item.quantity:
                raise ValueError(
                    f"Only {row['stock_quantity']} of {item.product.name} left in stock."
                )
        entry_id = finance.add_transaction(
            "income",
            POS_CATEGORY,
            f"Venda: {summary}",
            cart_total(cart),
            status="paid",
            due_date=sold_at.date(),
            created_at=sold_at,
            conn=conn,
        )
        conn.executemany(
            """
            UPDATE products SET stock_quantity = stock_quantity - ?
            WHERE id = ? AND stock_quantity IS NOT NULL
            """,
            [(item.quantity, item.product.id) for item in cart],
        )
    logger.info("POS sale %s booked: %s", entry_id, summary)
    return entry_id
