"""
MongoDB access for the Shop API.

``AppContext`` owns the pymongo client for the lifetime of the application;
it is created at startup, stored on ``app.state`` and closed at shutdown.
All helpers below take the database handle explicitly.

Ids are stored as ObjectIds in ``_id`` and as their string form wherever one
document references another (``orders.user_id``, ``orders.products[].product_id``).
A string that is not a valid ObjectId never matches anything.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import Settings
from schemas import Order, OrderItem, Product, User

logger = logging.getLogger(__name__)

USERS = "users"
PRODUCTS = "products"
ORDERS = "orders"


@dataclass
class AppContext:
    client: Any
    db: Database
    settings: Settings

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppContext":
        client = MongoClient(settings.database_url)
        logger.info("Connected to MongoDB database %r", settings.database_name)
        return cls(client=client, db=client[settings.database_name], settings=settings)

    def close(self) -> None:
        self.client.close()
        logger.info("MongoDB connection closed")


def to_object_id(value: str) -> Optional[ObjectId]:
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def ensure_indexes(db: Database) -> None:
    try:
        db[USERS].create_index([("email", ASCENDING)], unique=True)
        db[PRODUCTS].create_index([("name", ASCENDING)])
        db[ORDERS].create_index([("user_id", ASCENDING)])
        logger.info("Indexes ensured on %s, %s, %s", USERS, PRODUCTS, ORDERS)
    except PyMongoError:
        logger.exception("Failed to create indexes")


def create_document(db: Database, collection_name: str, data) -> str:
    """Insert a document, stamping ``created_at``/``updated_at``.

    ``data`` may be a Pydantic model or a plain dict. Returns the new id as a
    string.
    """
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    now = datetime.now(timezone.utc)
    doc["created_at"] = now
    doc["updated_at"] = now
    result = db[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(db: Database, collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None) -> List[dict]:
    cursor = db[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


# Users

def find_user_by_email(db: Database, email: str) -> Optional[dict]:
    return db[USERS].find_one({"email": email})


def insert_user(db: Database, user: User) -> str:
    return create_document(db, USERS, user)


# Products

def sample_products(db: Database, size: int = 6) -> List[dict]:
    return list(db[PRODUCTS].aggregate([{"$sample": {"size": size}}]))


def find_products_by_ids(db: Database, product_ids: Iterable[str]) -> Dict[str, dict]:
    """Resolve product id strings to documents, keyed by id string.

    Ids that are malformed or have no matching product are absent from the
    result.
    """
    oids = {oid for oid in (to_object_id(pid) for pid in product_ids) if oid is not None}
    if not oids:
        return {}
    return {str(doc["_id"]): doc for doc in db[PRODUCTS].find({"_id": {"$in": list(oids)}})}


def seed_products(db: Database, samples: Iterable[dict]) -> int:
    if db[PRODUCTS].count_documents({}) > 0:
        return 0
    count = 0
    for sample in samples:
        create_document(db, PRODUCTS, Product(**sample))
        count += 1
    logger.info("Seeded %d sample products", count)
    return count


# Orders

def insert_order(db: Database, order: Order) -> str:
    return create_document(db, ORDERS, order)


def find_user_order(db: Database, order_id: str, user_id: str) -> Optional[dict]:
    oid = to_object_id(order_id)
    if oid is None:
        return None
    return db[ORDERS].find_one({"_id": oid, "user_id": user_id})


def replace_order_items(db: Database, order_id: str, user_id: str, items: List[OrderItem], total_price: float) -> Optional[dict]:
    """Overwrite the line items and total of an owned order.

    Returns the updated document, or ``None`` if the order no longer exists
    for this user.
    """
    oid = to_object_id(order_id)
    if oid is None:
        return None
    return db[ORDERS].find_one_and_update(
        {"_id": oid, "user_id": user_id},
        {"$set": {
            "products": [item.model_dump() for item in items],
            "total_price": total_price,
            "updated_at": datetime.now(timezone.utc),
        }},
        return_document=ReturnDocument.AFTER,
    )


def list_user_orders(db: Database, user_id: str) -> List[dict]:
    return get_documents(db, ORDERS, {"user_id": user_id})


def delete_user_order(db: Database, order_id: str, user_id: str) -> bool:
    oid = to_object_id(order_id)
    if oid is None:
        return False
    return db[ORDERS].find_one_and_delete({"_id": oid, "user_id": user_id}) is not None


def ping(db: Database) -> Dict[str, Any]:
    """Connection diagnostics for the ``/test`` endpoint."""
    response = {
        "database": "❌ Not Available",
        "database_name": db.name,
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        collections = db.list_collection_names()
        response["collections"] = collections[:10]
        response["connection_status"] = "Connected"
        response["database"] = "✅ Connected & Working"
    except PyMongoError:
        logger.exception("Database diagnostics failed")
        response["database"] = "⚠️  Connected but Error"
    return response
