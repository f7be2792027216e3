"""Tests for the MongoDB helpers, run against mongomock."""

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from database import (
    ORDERS,
    PRODUCTS,
    USERS,
    create_document,
    delete_user_order,
    ensure_indexes,
    find_products_by_ids,
    find_user_by_email,
    find_user_order,
    get_documents,
    insert_order,
    insert_user,
    list_user_orders,
    ping,
    replace_order_items,
    sample_products,
    seed_products,
)
from schemas import Order, OrderItem, User

OWNER = "64b7f0c2a1b2c3d4e5f60718"
STRANGER = "64b7f0c2a1b2c3d4e5f60719"


def make_order(db, user_id=OWNER, product_id="p", quantity=1, total=1.0):
    order = Order(user_id=user_id, products=[OrderItem(product_id=product_id, quantity=quantity)], total_price=total)
    return insert_order(db, order)


class TestDocuments:
    def test_create_document_stamps_timestamps(self, db):
        doc_id = create_document(db, "things", {"a": 1})
        doc = db["things"].find_one({"_id": ObjectId(doc_id)})
        assert doc["a"] == 1
        assert doc["created_at"] is not None
        assert doc["updated_at"] is not None

    def test_get_documents_applies_filter_and_limit(self, db):
        for i in range(5):
            create_document(db, "things", {"n": i, "even": i % 2 == 0})
        assert len(get_documents(db, "things", {"even": True})) == 3
        assert len(get_documents(db, "things", limit=2)) == 2


class TestUsers:
    def test_email_is_unique_once_indexes_exist(self, db):
        ensure_indexes(db)
        insert_user(db, User(name="A", email="a@x.com", password_hash="h"))
        with pytest.raises(DuplicateKeyError):
            insert_user(db, User(name="A2", email="a@x.com", password_hash="h2"))

    def test_find_user_by_email(self, db):
        insert_user(db, User(name="A", email="a@x.com", password_hash="h"))
        assert find_user_by_email(db, "a@x.com")["name"] == "A"
        assert find_user_by_email(db, "missing@x.com") is None


class TestProducts:
    def test_sample_returns_at_most_six(self, db):
        for i in range(10):
            db[PRODUCTS].insert_one({"name": f"item {i}", "price": i})
        sample = sample_products(db, size=6)
        assert len(sample) == 6
        assert len({str(d["_id"]) for d in sample}) == 6

    def test_sample_with_few_products_returns_all(self, db):
        db[PRODUCTS].insert_one({"name": "only", "price": 1})
        assert len(sample_products(db)) == 1

    def test_find_by_ids_skips_missing_and_malformed(self, db, products):
        found = find_products_by_ids(db, [products["P1"], str(ObjectId()), "not-an-id"])
        assert list(found) == [products["P1"]]
        assert found[products["P1"]]["price"] == 10

    def test_find_by_ids_with_nothing_valid(self, db):
        assert find_products_by_ids(db, ["nope"]) == {}

    def test_seed_only_when_empty(self, db):
        samples = [{"name": "A", "price": 1.0}, {"name": "B", "price": 2.0}]
        assert seed_products(db, samples) == 2
        assert seed_products(db, samples) == 0
        assert db[PRODUCTS].count_documents({}) == 2


class TestOrders:
    def test_find_user_order_is_owner_scoped(self, db):
        order_id = make_order(db)
        assert find_user_order(db, order_id, OWNER) is not None
        assert find_user_order(db, order_id, STRANGER) is None
        assert find_user_order(db, "bad-id", OWNER) is None

    def test_replace_items_updates_total(self, db):
        order_id = make_order(db)
        updated = replace_order_items(db, order_id, OWNER, [OrderItem(product_id="q", quantity=3)], 42.0)
        assert updated["total_price"] == 42.0
        assert updated["products"] == [{"product_id": "q", "quantity": 3}]

    def test_replace_items_for_stranger_is_none(self, db):
        order_id = make_order(db)
        assert replace_order_items(db, order_id, STRANGER, [], 0.0) is None
        assert db[ORDERS].find_one({"_id": ObjectId(order_id)})["total_price"] == 1.0

    def test_list_user_orders_only_returns_own(self, db):
        make_order(db)
        make_order(db)
        make_order(db, user_id=STRANGER)
        assert len(list_user_orders(db, OWNER)) == 2
        assert len(list_user_orders(db, STRANGER)) == 1

    def test_delete_is_owner_scoped(self, db):
        order_id = make_order(db)
        assert delete_user_order(db, order_id, STRANGER) is False
        assert delete_user_order(db, order_id, OWNER) is True
        assert delete_user_order(db, order_id, OWNER) is False
        assert delete_user_order(db, "bad-id", OWNER) is False


def test_ensure_indexes_creates_expected_indexes(db):
    ensure_indexes(db)
    user_indexes = db[USERS].index_information()
    assert any(info.get("unique") and info["key"] == [("email", 1)] for info in user_indexes.values())
    assert any(info["key"] == [("name", 1)] for info in db[PRODUCTS].index_information().values())
    assert any(info["key"] == [("user_id", 1)] for info in db[ORDERS].index_information().values())


def test_ping_reports_connection(db):
    db["things"].insert_one({"a": 1})
    report = ping(db)
    assert report["connection_status"] == "Connected"
    assert "things" in report["collections"]
