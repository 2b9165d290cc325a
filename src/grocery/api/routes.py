"""FastAPI endpoints for the grocery engine."""

from fastapi import APIRouter, Query
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from grocery.api.schemas import (
    AccountResponse,
    AddProductRequest,
    AlertResponse,
    CancelRequest,
    CarrierRatingSummaryResponse,
    CheckoutRequest,
    ClaimManyRequest,
    ClaimManyResponse,
    ClaimRequest,
    CouponCodeResponse,
    CreateCouponRequest,
    DeliverRequest,
    HistoryEntryResponse,
    IdResponse,
    LoyaltyResponse,
    OrderLineResponse,
    OrderResponse,
    ProductResponse,
    RateCarrierRequest,
    RegisterAccountRequest,
    RestockRequest,
    StatusResponse,
    UpdateProductRequest,
)
from grocery.catalogue.management import AddProduct, RemoveProduct, UpdateProduct
from grocery.catalogue.product import Product
from grocery.identity.account import Account, RegisterAccount
from grocery.inventory.stocking import RestockProduct
from grocery.loyalty.account import CustomerLoyalty
from grocery.notifications.alert import LowStockAlert
from grocery.notifications.low_stock import MarkAlertRead, SweepLowStock
from grocery.ordering import transitions
from grocery.ordering.checkout import checkout
from grocery.ordering.history import history_for
from grocery.ordering.order import Order, OrderStatus
from grocery.promotions.management import ActivateCoupon, CreateCoupon, DeactivateCoupon
from grocery.ratings.rating import CarrierRating, CarrierRatingSummary
from grocery.ratings.submission import RateCarrier

product_router = APIRouter(prefix="/products", tags=["products"])
order_router = APIRouter(prefix="/orders", tags=["orders"])
carrier_router = APIRouter(prefix="/carriers", tags=["carriers"])
customer_router = APIRouter(prefix="/customers", tags=["customers"])
coupon_router = APIRouter(prefix="/coupons", tags=["coupons"])
alert_router = APIRouter(prefix="/alerts", tags=["alerts"])
account_router = APIRouter(prefix="/accounts", tags=["accounts"])


def _product(product: Product) -> ProductResponse:
    return ProductResponse(
        product_id=str(product.id),
        name=product.name,
        product_type=product.product_type,
        price=product.price,
        discount_percent=product.discount_percent,
        effective_price=product.effective_price(),
        stock_quantity=product.stock_quantity,
        low_stock_threshold=product.low_stock_threshold,
    )


def _order(order: Order) -> OrderResponse:
    return OrderResponse(
        order_id=str(order.id),
        customer_id=order.customer_id,
        status=order.status,
        carrier_id=order.carrier_id,
        requested_delivery_at=order.requested_delivery_at,
        created_at=order.created_at,
        delivered_at=order.delivered_at,
        cancelled_at=order.cancelled_at,
        cancel_reason=order.cancel_reason,
        subtotal=order.subtotal,
        discount_total=order.discount_total,
        vat_total=order.vat_total,
        total=order.total,
        coupon_code=order.coupon_code,
        lines=[
            OrderLineResponse(
                line_number=line.line_number,
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
            )
            for line in order.sorted_lines()
        ],
    )


def _rating_summary(summary: CarrierRatingSummary) -> CarrierRatingSummaryResponse:
    return CarrierRatingSummaryResponse(
        carrier_id=summary.carrier_id,
        average_rating=summary.average_rating,
        rating_count=summary.rating_count,
    )


# --- Products ---


@product_router.post("", status_code=201, response_model=IdResponse)
async def add_product(body: AddProductRequest) -> IdResponse:
    command = AddProduct(
        name=body.name,
        product_type=body.product_type,
        price=body.price,
        discount_percent=body.discount_percent,
        initial_stock=body.initial_stock,
        low_stock_threshold=body.low_stock_threshold,
    )
    return IdResponse(id=current_domain.process(command, asynchronous=False))


@product_router.get("", response_model=list[ProductResponse])
async def list_products(product_type: str | None = Query(None, alias="type")) -> list[ProductResponse]:
    repo = current_domain.repository_for(Product)
    products = repo.by_type(product_type) if product_type else repo.all_products()
    return [_product(product) for product in products]


@product_router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str) -> ProductResponse:
    return _product(current_domain.repository_for(Product).get(product_id))


@product_router.put("/{product_id}", response_model=StatusResponse)
async def update_product(product_id: str, body: UpdateProductRequest) -> StatusResponse:
    command = UpdateProduct(
        product_id=product_id,
        name=body.name,
        product_type=body.product_type,
        price=body.price,
        discount_percent=body.discount_percent,
        low_stock_threshold=body.low_stock_threshold,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@product_router.delete("/{product_id}", response_model=StatusResponse)
async def remove_product(product_id: str) -> StatusResponse:
    current_domain.process(RemoveProduct(product_id=product_id), asynchronous=False)
    return StatusResponse()


@product_router.post("/{product_id}/restock", response_model=ProductResponse)
async def restock_product(product_id: str, body: RestockRequest) -> ProductResponse:
    current_domain.process(RestockProduct(product_id=product_id, quantity=body.quantity), asynchronous=False)
    return _product(current_domain.repository_for(Product).get(product_id))


# --- Orders ---


@order_router.post("", status_code=201, response_model=OrderResponse)
async def place_order(body: CheckoutRequest) -> OrderResponse:
    order = checkout(
        customer_id=body.customer_id,
        lines=[line.model_dump() for line in body.lines],
        requested_delivery_at=body.requested_delivery_at,
        coupon_code=body.coupon_code,
    )
    return _order(order)


@order_router.get("/available", response_model=list[OrderResponse])
async def available_orders() -> list[OrderResponse]:
    orders = current_domain.repository_for(Order).available_for_claim()
    return [_order(order) for order in orders]


@order_router.put("/claim", response_model=ClaimManyResponse)
async def claim_orders(body: ClaimManyRequest) -> ClaimManyResponse:
    return ClaimManyResponse(claimed=transitions.claim_many(body.order_ids, body.carrier_id))


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    return _order(current_domain.repository_for(Order).get(order_id))


@order_router.get("/{order_id}/history", response_model=list[HistoryEntryResponse])
async def order_history(order_id: str) -> list[HistoryEntryResponse]:
    return [
        HistoryEntryResponse(status=entry.status, actor=entry.actor, note=entry.note, occurred_at=entry.occurred_at)
        for entry in history_for(order_id)
    ]


@order_router.put("/{order_id}/claim", response_model=OrderResponse)
async def claim_order(order_id: str, body: ClaimRequest) -> OrderResponse:
    return _order(transitions.claim(order_id, body.carrier_id))


@order_router.put("/{order_id}/deliver", response_model=OrderResponse)
async def deliver_order(order_id: str, body: DeliverRequest) -> OrderResponse:
    return _order(transitions.deliver(order_id, body.carrier_id, body.delivered_at))


@order_router.put("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(order_id: str, body: CancelRequest) -> OrderResponse:
    return _order(transitions.cancel(order_id, body.customer_id, body.reason))


@order_router.post("/{order_id}/rating", status_code=201, response_model=IdResponse)
async def rate_carrier(order_id: str, body: RateCarrierRequest) -> IdResponse:
    command = RateCarrier(order_id=order_id, customer_id=body.customer_id, rating=body.rating, comment=body.comment)
    return IdResponse(id=current_domain.process(command, asynchronous=False))


# --- Carriers and customers ---


@carrier_router.get("/{carrier_id}/orders", response_model=list[OrderResponse])
async def carrier_orders(carrier_id: str, status: OrderStatus | None = None) -> list[OrderResponse]:
    orders = current_domain.repository_for(Order).assigned_to(carrier_id, status.value if status else None)
    return [_order(order) for order in orders]


@carrier_router.get("/ratings", response_model=list[CarrierRatingSummaryResponse])
async def carrier_ratings() -> list[CarrierRatingSummaryResponse]:
    return [_rating_summary(summary) for summary in current_domain.repository_for(CarrierRating).summaries()]


@carrier_router.get("/{carrier_id}/rating", response_model=CarrierRatingSummaryResponse)
async def carrier_rating(carrier_id: str) -> CarrierRatingSummaryResponse:
    repo = current_domain.repository_for(CarrierRating)
    return CarrierRatingSummaryResponse(
        carrier_id=carrier_id,
        average_rating=repo.average_for(carrier_id),
        rating_count=len(repo.for_carrier(carrier_id)),
    )


@customer_router.get("/{customer_id}/orders", response_model=list[OrderResponse])
async def customer_orders(customer_id: str) -> list[OrderResponse]:
    return [_order(order) for order in current_domain.repository_for(Order).placed_by(customer_id)]


@customer_router.get("/{customer_id}/loyalty", response_model=LoyaltyResponse)
async def customer_loyalty(customer_id: str) -> LoyaltyResponse:
    loyalty = current_domain.repository_for(CustomerLoyalty).find_by_customer(customer_id)
    if loyalty is None:
        raise ObjectNotFoundError(f"No loyalty record for customer {customer_id}")
    return LoyaltyResponse(
        customer_id=loyalty.customer_id,
        points=loyalty.points,
        total_spent=loyalty.total_spent,
        tier=loyalty.tier,
        discount_percent=loyalty.discount_percent,
    )


# --- Coupons ---


@coupon_router.post("", status_code=201, response_model=CouponCodeResponse)
async def create_coupon(body: CreateCouponRequest) -> CouponCodeResponse:
    command = CreateCoupon(
        code=body.code,
        discount_percent=body.discount_percent,
        discount_amount=body.discount_amount,
        min_order_amount=body.min_order_amount,
        valid_from=body.valid_from,
        valid_until=body.valid_until,
        max_uses=body.max_uses,
    )
    return CouponCodeResponse(code=current_domain.process(command, asynchronous=False))


@coupon_router.put("/{code}/activate", response_model=StatusResponse)
async def activate_coupon(code: str) -> StatusResponse:
    current_domain.process(ActivateCoupon(code=code), asynchronous=False)
    return StatusResponse()


@coupon_router.put("/{code}/deactivate", response_model=StatusResponse)
async def deactivate_coupon(code: str) -> StatusResponse:
    current_domain.process(DeactivateCoupon(code=code), asynchronous=False)
    return StatusResponse()


# --- Alerts ---


@alert_router.get("", response_model=list[AlertResponse])
async def list_alerts(unread: bool = True) -> list[AlertResponse]:
    repo = current_domain.repository_for(LowStockAlert)
    alerts = repo.unread() if unread else repo.recent()
    return [
        AlertResponse(
            alert_id=str(alert.id),
            product_id=alert.product_id,
            title=alert.title,
            message=alert.message,
            is_read=alert.is_read,
            created_at=alert.created_at,
        )
        for alert in alerts
    ]


@alert_router.put("/{alert_id}/read", response_model=StatusResponse)
async def mark_alert_read(alert_id: str) -> StatusResponse:
    current_domain.process(MarkAlertRead(alert_id=alert_id), asynchronous=False)
    return StatusResponse()


@alert_router.post("/sweep", response_model=list[str])
async def sweep_low_stock() -> list[str]:
    return current_domain.process(SweepLowStock(), asynchronous=False)


# --- Accounts ---


@account_router.post("", status_code=201, response_model=IdResponse)
async def register_account(body: RegisterAccountRequest) -> IdResponse:
    command = RegisterAccount(username=body.username, display_name=body.display_name, role=body.role)
    return IdResponse(id=current_domain.process(command, asynchronous=False))


@account_router.get("/{username}", response_model=AccountResponse)
async def get_account(username: str) -> AccountResponse:
    account = current_domain.repository_for(Account).find_by_username(username)
    if account is None:
        raise ObjectNotFoundError(f"Account {username} does not exist")
    return AccountResponse(
        account_id=str(account.id),
        username=account.username,
        display_name=account.display_name,
        role=account.role,
        dashboard=account.dashboard,
    )
