from datetime import date, datetime

import pytest

import finance
import pos
from models import Product

KIMONO = Product(id=1, name="Kimono", price=250.0, stock_quantity=2)
WATER = Product(id=2, name="Água", price=4.5, stock_quantity=None)


def test_add_to_cart_respects_stock():
    cart = []
    for _ in range(3):
        pos.add_to_cart(cart, KIMONO)

    assert [(i.product.name, i.quantity) for i in cart] == [("Kimono", 2)]


def test_unlimited_stock_and_sold_out_products():
    cart = []
    for _ in range(5):
        pos.add_to_cart(cart, WATER)
    pos.add_to_cart(cart, Product(id=3, name="Faixa", price=30.0, stock_quantity=0))

    assert [(i.product.name, i.quantity) for i in cart] == [("Água", 5)]


def test_update_quantity_stays_within_bounds():
    cart = pos.add_to_cart([], KIMONO)

    pos.update_quantity(cart, KIMONO.id, -1)
    assert cart[0].quantity == 1
    pos.update_quantity(cart, KIMONO.id, 1)
    pos.update_quantity(cart, KIMONO.id, 1)
    assert cart[0].quantity == 2


def test_cart_total_and_remove():
    cart = pos.add_to_cart(pos.add_to_cart([], KIMONO), WATER)
    pos.update_quantity(cart, WATER.id, 1)

    assert pos.cart_total(cart) == 259.0
    assert pos.cart_total(pos.remove_from_cart(cart, KIMONO.id)) == 9.0


def test_checkout_books_income_and_decrements_stock(fresh_db):
    kimono_id = pos.save_product("Kimono", 250.0, 5)
    water_id = pos.save_product("Água", 4.5, None)
    products = {p.id: p for p in pos.fetch_products()}
    cart = []
    pos.add_to_cart(cart, products[kimono_id])
    pos.add_to_cart(cart, products[kimono_id])
    pos.add_to_cart(cart, products[water_id])

    entry_id = pos.checkout(cart, sold_at=datetime(2024, 3, 10, 11, 0))

    sale = finance.get_transaction(entry_id)
    assert sale.type == "income"
    assert sale.status == "paid"
    assert sale.category == "PDV"
    assert sale.description == "Venda: 2x Kimono, 1x Água"
    assert sale.amount == 504.5
    stock = {p.name: p.stock_quantity for p in pos.fetch_products()}
    assert stock == {"Kimono": 3, "Água": None}


def test_checkout_empty_cart():
    with pytest.raises(ValueError):
        pos.checkout([])


def test_fetch_products_search(fresh_db):
    pos.save_product("Kimono A1", 250.0, 1)
    pos.save_product("Rashguard", 120.0, 1)

    assert [p.name for p in pos.fetch_products("kim")] == ["Kimono A1"]


def test_update_and_delete_product(fresh_db):
    product_id = pos.save_product("Faixa", 30.0, 10)
    pos.save_product("Faixa Preta", 45.0, None, product_id=product_id)

    assert pos.fetch_products() == [Product(id=product_id, name="Faixa Preta", price=45.0, stock_quantity=None)]

    pos.delete_product(product_id)
    assert pos.fetch_products() == []


def test_checkout_refuses_stale_cart_that_would_oversell(fresh_db):
    kimono_id = pos.save_product("Kimono", 250.0, 2)
    [kimono] = pos.fetch_products()
    cart = []
    pos.add_to_cart(cart, kimono)
    pos.add_to_cart(cart, kimono)
    # one sold at the other register in the meantime
    pos.save_product("Kimono", 250.0, 1, product_id=kimono_id)

    with pytest.raises(ValueError, match="Only 1 of Kimono"):
        pos.checkout(cart)

    assert finance.fetch_transactions(date(2000, 1, 1), date(2100, 1, 1)) == []
    assert pos.fetch_products()[0].stock_quantity == 1


def test_checkout_of_removed_product(fresh_db):
    product_id = pos.save_product("Faixa", 30.0, 5)
    cart = pos.add_to_cart([], pos.fetch_products()[0])
    pos.delete_product(product_id)

    with pytest.raises(LookupError):
        pos.checkout(cart)

    assert finance.fetch_transactions(date(2000, 1, 1), date(2100, 1, 1)) == []
