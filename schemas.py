"""
Database Schemas for the Shop API

Each collection model below describes the documents stored in MongoDB. The
collection name is given in the class docstring. Request and response bodies
for the HTTP layer live at the bottom of the module.
"""

from pydantic import BaseModel, ConfigDict, Field, EmailStr
from typing import Optional, List


class User(BaseModel):
    """
    Users collection schema
    Collection name: "users"
    """
    name: Optional[str] = Field(None, description="Display name")
    email: EmailStr = Field(..., description="Email address, unique")
    password_hash: str = Field(..., description="bcrypt password hash")


class Product(BaseModel):
    """
    Products collection schema
    Collection name: "products"
    """
    name: str = Field(..., description="Product name")
    price: float = Field(..., ge=0, description="Unit price")
    description: Optional[str] = Field(None, description="Product description")
    image: Optional[str] = Field(None, description="Image URL or path")


class OrderItem(BaseModel):
    product_id: str = Field(..., description="Referenced product _id as string")
    quantity: int = Field(..., ge=1)


class Order(BaseModel):
    """
    Orders collection schema
    Collection name: "orders"
    """
    user_id: str = Field(..., description="Owner's user _id as string")
    products: List[OrderItem]
    total_price: float = Field(..., ge=0)


# Wire schemas. Keys follow the public camelCase contract.

class RegisterRequest(BaseModel):
    name: Optional[str] = None
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    token: str
    email: str


class MessageResponse(BaseModel):
    message: str


class LineItemIn(BaseModel):
    productId: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)

    def to_item(self) -> OrderItem:
        return OrderItem(product_id=self.productId, quantity=self.quantity)


class OrderRequest(BaseModel):
    # emptiness is checked by the handlers so each route keeps its own message
    products: Optional[List[LineItemIn]] = None


class ProductOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    name: str
    price: float
    description: Optional[str] = None
    image: Optional[str] = None


class ProductSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    name: str
    price: float
    image: Optional[str] = None


class LineItemOut(BaseModel):
    productId: str
    quantity: int


class ExpandedLineItemOut(BaseModel):
    productId: Optional[ProductSummary]
    quantity: int


class OrderOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    userId: str
    products: List[LineItemOut]
    totalPrice: float


class ExpandedOrderOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    userId: str
    products: List[ExpandedLineItemOut]
    totalPrice: float


class OrderCreatedResponse(BaseModel):
    message: str
    orderId: str


class OrderUpdatedResponse(BaseModel):
    message: str
    order: OrderOut
