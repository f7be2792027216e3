import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, Header, Request, status
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import DuplicateKeyError, PyMongoError

from config import Settings
from database import (
    AppContext,
    delete_user_order,
    ensure_indexes,
    find_products_by_ids,
    find_user_by_email,
    find_user_order,
    insert_order,
    insert_user,
    list_user_orders,
    ping,
    replace_order_items,
    sample_products,
    seed_products,
)
from errors import (
    ForbiddenError,
    InternalError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
    register_exception_handlers,
)
from logging_config import setup_logging
from schemas import (
    ExpandedLineItemOut,
    ExpandedOrderOut,
    LineItemOut,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    Order,
    OrderCreatedResponse,
    OrderItem,
    OrderOut,
    OrderRequest,
    OrderUpdatedResponse,
    ProductOut,
    ProductSummary,
    RegisterRequest,
    User,
)
from security import (
    InvalidTokenError,
    TokenClaims,
    hash_password,
    issue_token,
    verify_password,
    verify_token,
)

logger = logging.getLogger(__name__)

SAMPLE_PRODUCTS = [
    {
        "name": "Aurora Card Wallet",
        "price": 29.99,
        "description": "Slim RFID wallet.",
        "image": "images/wallet.jpg",
    },
    {
        "name": "Nebula Headphones",
        "price": 129.0,
        "description": "Wireless noise-cancelling over-ears.",
        "image": "images/headphones.jpg",
    },
    {
        "name": "Lumos Desk Lamp",
        "price": 49.5,
        "description": "Touch dimmer, USB-C powered.",
        "image": "images/lamp.jpg",
    },
    {
        "name": "Flux Water Bottle",
        "price": 24.0,
        "description": "Insulated steel bottle.",
        "image": "images/bottle.jpg",
    },
    {
        "name": "Orbit Backpack",
        "price": 79.0,
        "description": "Water-resistant 20L daypack.",
        "image": "images/backpack.jpg",
    },
    {
        "name": "Pulse Smart Band",
        "price": 59.9,
        "description": "Fitness tracker with heart-rate sensor.",
        "image": "images/band.jpg",
    },
]


# Dependencies

def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    ctx: AppContext = Depends(get_context),
) -> TokenClaims:
    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthorizedError("Unauthorized")
    token = authorization.split(" ", 1)[1].strip()
    try:
        return verify_token(token, ctx.settings.jwt_secret)
    except InvalidTokenError:
        raise ForbiddenError("Invalid token")
    except Exception:
        logger.exception("Token verification failed unexpectedly")
        raise InternalError("Authentication error")


# Helpers

def order_total(items: List[OrderItem], products: Dict[str, dict]) -> float:
    """Sum price * quantity over the items whose product is in ``products``."""
    total = 0.0
    for item in items:
        product = products.get(item.product_id)
        if product is not None:
            total += product["price"] * item.quantity
    return total


def order_out(doc: dict) -> OrderOut:
    return OrderOut(
        id=str(doc["_id"]),
        userId=doc["user_id"],
        products=[LineItemOut(productId=p["product_id"], quantity=p["quantity"]) for p in doc.get("products", [])],
        totalPrice=doc.get("total_price", 0),
    )


def expanded_order_out(doc: dict, products: Dict[str, dict]) -> ExpandedOrderOut:
    lines = []
    for p in doc.get("products", []):
        product = products.get(p["product_id"])
        summary = None
        if product is not None:
            summary = ProductSummary(
                id=str(product["_id"]),
                name=product.get("name", ""),
                price=product.get("price", 0),
                image=product.get("image"),
            )
        lines.append(ExpandedLineItemOut(productId=summary, quantity=p["quantity"]))
    return ExpandedOrderOut(
        id=str(doc["_id"]),
        userId=doc["user_id"],
        products=lines,
        totalPrice=doc.get("total_price", 0),
    )


def create_app(settings: Optional[Settings] = None, context: Optional[AppContext] = None) -> FastAPI:
    """Build the API.

    ``context`` lets callers supply an already constructed ``AppContext``
    (tests pass one backed by mongomock); otherwise one is created from
    ``settings`` when the app starts and closed when it stops.
    """
    settings = settings or (context.settings if context else Settings.from_env())
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ctx = context or AppContext.from_settings(settings)
        app.state.context = ctx
        ensure_indexes(ctx.db)
        if settings.seed_products:
            seed_products(ctx.db, SAMPLE_PRODUCTS)
        try:
            yield
        finally:
            ctx.close()

    app = FastAPI(title=settings.project_name, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.get("/")
    def read_root():
        return {"message": "Shop API running"}

    @app.get("/test")
    def test_database(ctx: AppContext = Depends(get_context)):
        response = {"backend": "✅ Running"}
        response.update(ping(ctx.db))
        return response

    # Auth endpoints
    @app.post("/api/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
    def register(payload: RegisterRequest, ctx: AppContext = Depends(get_context)):
        try:
            if find_user_by_email(ctx.db, payload.email):
                raise ValidationError("User already exists")
            user = User(name=payload.name, email=payload.email, password_hash=hash_password(payload.password))
            user_id = insert_user(ctx.db, user)
        except DuplicateKeyError:
            # lost a race with a concurrent registration
            raise ValidationError("User already exists")
        except PyMongoError:
            logger.exception("Error registering user")
            raise InternalError("Failed to register user")
        logger.info("Registered user %s", user_id)
        return MessageResponse(message="User registered successfully")

    @app.post("/api/login", response_model=LoginResponse)
    def login(payload: LoginRequest, ctx: AppContext = Depends(get_context)):
        try:
            user = find_user_by_email(ctx.db, payload.email)
        except PyMongoError:
            logger.exception("Error looking up user for login")
            raise InternalError("Failed to log in")
        if not user:
            raise ValidationError("User not found")
        if not verify_password(payload.password, user.get("password_hash", "")):
            logger.info("Rejected login for user %s: wrong password", user["_id"])
            raise ValidationError("Invalid password")

        claims = TokenClaims(userId=str(user["_id"]), email=user["email"])
        token = issue_token(claims, ctx.settings.jwt_secret, expires_in=timedelta(minutes=ctx.settings.token_ttl_minutes))
        return LoginResponse(token=token, email=user["email"])

    # Products
    @app.get("/api/products", response_model=List[ProductOut])
    def list_products(ctx: AppContext = Depends(get_context)):
        try:
            docs = sample_products(ctx.db, size=6)
        except PyMongoError:
            logger.exception("Error fetching products")
            raise InternalError("Error fetching products")
        return [
            ProductOut(
                id=str(d["_id"]),
                name=d.get("name", ""),
                price=d.get("price", 0),
                description=d.get("description"),
                image=d.get("image"),
            )
            for d in docs
        ]

    # Orders
    @app.post("/api/orders", response_model=OrderCreatedResponse, status_code=status.HTTP_201_CREATED)
    def create_order(
        payload: OrderRequest,
        user: TokenClaims = Depends(get_current_user),
        ctx: AppContext = Depends(get_context),
    ):
        if not payload.products:
            raise ValidationError("No products provided")
        items = [line.to_item() for line in payload.products]

        try:
            found = find_products_by_ids(ctx.db, [item.product_id for item in items])
            if any(item.product_id not in found for item in items):
                raise ValidationError("Some products not found")
            order = Order(user_id=user.userId, products=items, total_price=order_total(items, found))
            order_id = insert_order(ctx.db, order)
        except PyMongoError:
            logger.exception("Error creating order")
            raise InternalError("Failed to create order")
        logger.info("Created order %s for user %s", order_id, user.userId)
        return OrderCreatedResponse(message="Order created successfully", orderId=order_id)

    @app.put("/api/orders/{order_id}", response_model=OrderUpdatedResponse)
    def update_order(
        order_id: str,
        payload: OrderRequest,
        user: TokenClaims = Depends(get_current_user),
        ctx: AppContext = Depends(get_context),
    ):
        if not payload.products:
            raise ValidationError("No products provided for update")
        items = [line.to_item() for line in payload.products]

        try:
            if find_user_order(ctx.db, order_id, user.userId) is None:
                raise NotFoundError("Order not found")
            # unresolved products are kept on the order but add nothing to the total
            found = find_products_by_ids(ctx.db, [item.product_id for item in items])
            updated = replace_order_items(ctx.db, order_id, user.userId, items, order_total(items, found))
        except PyMongoError:
            logger.exception("Error updating order %s", order_id)
            raise InternalError("Failed to update order")
        if updated is None:
            raise NotFoundError("Order not found")
        logger.info("Updated order %s for user %s", order_id, user.userId)
        return OrderUpdatedResponse(message="Order updated successfully", order=order_out(updated))

    @app.get("/api/orders", response_model=List[ExpandedOrderOut])
    def list_orders(
        user: TokenClaims = Depends(get_current_user),
        ctx: AppContext = Depends(get_context),
    ):
        try:
            docs = list_user_orders(ctx.db, user.userId)
            product_ids = {p["product_id"] for d in docs for p in d.get("products", [])}
            products = find_products_by_ids(ctx.db, product_ids)
        except PyMongoError:
            logger.exception("Error fetching orders")
            raise InternalError("Failed to fetch orders")
        if not docs:
            raise NotFoundError("No orders found")
        return [expanded_order_out(d, products) for d in docs]

    @app.delete("/api/orders/{order_id}", response_model=MessageResponse)
    def delete_order(
        order_id: str,
        user: TokenClaims = Depends(get_current_user),
        ctx: AppContext = Depends(get_context),
    ):
        try:
            deleted = delete_user_order(ctx.db, order_id, user.userId)
        except PyMongoError:
            logger.exception("Error deleting order %s", order_id)
            raise InternalError("Failed to delete order")
        if not deleted:
            raise NotFoundError("Order not found")
        logger.info("Deleted order %s for user %s", order_id, user.userId)
        return MessageResponse(message="Order deleted successfully")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=Settings.from_env().port)
