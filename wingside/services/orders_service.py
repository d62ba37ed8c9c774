import logging
import secrets
from typing import Dict, List, Optional

from wingside.core.clock import iso, money, utcnow
from wingside.core.errors import AppError, Conflict, NotFound, ServiceUnavailable, ValidationFailed
from wingside.core.events import event_manager
from wingside.core.permissions import has_permission
from wingside.core.settings import settings
from wingside.core.supabase import first_row, get_client
from wingside.schemas.orders import OrderCreate
from wingside.services import notifications, order_state, store_status
from wingside.services.catalog_service import CatalogService, price_for
from wingside.services.gift_card_service import GiftCardService
from wingside.services.payments.paystack import PaystackClient
from wingside.services.points_service import PointsService
from wingside.services.promo_service import PromoService

logger = logging.getLogger(__name__)

MIN_TRACKING_TOKEN_LENGTH = 32
MAX_ORDER_NUMBER_ATTEMPTS = 5


def generate_order_number() -> str:
    return f"WS{utcnow():%Y%m%d}{secrets.randbelow(10**6):06d}"


def generate_tracking_token() -> str:
    return secrets.token_urlsafe(32)


def order_summary(order: Dict) -> Dict:
    """Fields pushed to the kitchen feed"""
    return {
        "id": order["id"],
        "order_number": order.get("order_number"),
        "status": order.get("status"),
        "payment_status": order.get("payment_status"),
        "fulfillment": order.get("fulfillment"),
        "customer_name": order.get("customer_name"),
        "total": order.get("total"),
    }


class OrderService:
    """
    Order creation, lookup and status changes.
    """

    @staticmethod
    def _items_for(order_ids: List[str]) -> Dict[str, List[Dict]]:
        if not order_ids:
            return {}
        response = get_client().table("order_items").select("*").in_("order_id", order_ids).execute()
        grouped: Dict[str, List[Dict]] = {}
        for item in response.data or []:
            grouped.setdefault(str(item["order_id"]), []).append(item)
        return grouped

    @staticmethod
    def _with_items(orders: List[Dict]) -> List[Dict]:
        items = OrderService._items_for([o["id"] for o in orders])
        return [{**o, "items": items.get(str(o["id"]), [])} for o in orders]

    @staticmethod
    def _unique_order_number() -> str:
        client = get_client()
        for _ in range(MAX_ORDER_NUMBER_ATTEMPTS):
            number = generate_order_number()
            exists = first_row(client.table("orders").select("id").eq("order_number", number).limit(1).execute())
            if not exists:
                return number
        raise Conflict("Could not allocate an order number, please retry")

    @staticmethod
    def _price_items(payload: OrderCreate) -> List[Dict]:
        products = CatalogService.get_products(item.product_id for item in payload.items)
        priced = []
        for item in payload.items:
            product = products.get(str(item.product_id))
            if not product or not product.get("is_active", True):
                raise ValidationFailed(f"Product {item.product_id} is not available")
            if item.quantity < 1 or item.quantity > settings.MAX_ITEM_QUANTITY:
                raise ValidationFailed(f"Quantity must be between 1 and {settings.MAX_ITEM_QUANTITY}")

            unit_price = money(price_for(product, item.size))
            priced.append({
                "product_id": product["id"],
                "product_name": product["name"],
                "size": item.size,
                "flavors": item.flavors,
                "addons": item.addons,
                "quantity": item.quantity,
                "unit_price": unit_price,
                "total_price": money(unit_price * item.quantity),
            })
        return priced

    @staticmethod
    def _delivery_fee(payload: OrderCreate, subtotal: float) -> float:
        if payload.fulfillment == "pickup":
            return 0.0
        if not payload.delivery_area_id:
            raise ValidationFailed("delivery_area_id is required for delivery orders")
        if not (payload.delivery_address_text or "").strip():
            raise ValidationFailed("delivery_address_text is required for delivery orders")

        area = CatalogService.get("delivery_areas", payload.delivery_area_id)
        if not area.get("is_active", True):
            raise ValidationFailed("We don't deliver to this area at the moment")
        if subtotal >= settings.FREE_DELIVERY_THRESHOLD:
            return 0.0
        return money(area.get("delivery_fee"))

    @staticmethod
    def create_order(payload: OrderCreate, user: Optional[Dict] = None) -> Dict:
        accepting, message = store_status.accepting_orders()
        if not accepting:
            raise ServiceUnavailable(message)

        items = OrderService._price_items(payload)
        subtotal = money(sum(item["total_price"] for item in items))
        if subtotal < settings.MIN_ORDER_AMOUNT:
            raise ValidationFailed(f"Minimum order amount is ₦{settings.MIN_ORDER_AMOUNT:,.0f}")

        delivery_fee = OrderService._delivery_fee(payload, subtotal)
        tax = 0.0

        discount = 0.0
        promo_code_id = None
        if payload.promo_code:
            promo = PromoService.validate(payload.promo_code, subtotal)
            discount = promo["discount_amount"]
            promo_code_id = promo["promo_code"]["id"]

        total = money(max(0.0, subtotal + delivery_fee + tax - discount))
        if total > settings.MAX_ORDER_AMOUNT:
            raise ValidationFailed("Order amount exceeds maximum limit")

        client = get_client()
        now = iso(utcnow())
        order = first_row(client.table("orders").insert({
            "order_number": OrderService._unique_order_number(),
            "user_id": user["id"] if user else None,
            "customer_name": payload.customer_name.strip(),
            "customer_email": payload.customer_email,
            "customer_phone": payload.customer_phone.strip(),
            "fulfillment": payload.fulfillment,
            "delivery_area_id": payload.delivery_area_id if payload.fulfillment == "delivery" else None,
            "delivery_address_text": payload.delivery_address_text if payload.fulfillment == "delivery" else None,
            "status": "pending",
            "payment_status": "pending",
            "payment_method": payload.payment_method,
            "subtotal": subtotal,
            "delivery_fee": delivery_fee,
            "tax": tax,
            "discount_amount": discount,
            "promo_code_id": promo_code_id,
            "gift_card_amount": 0,
            "total": total,
            "tracking_token": generate_tracking_token(),
            "notes": payload.notes,
            "created_at": now,
            "updated_at": now,
        }).execute())
        if not order:
            raise AppError("Failed to create order")

        try:
            response = client.table("order_items").insert([{**item, "order_id": order["id"]} for item in items]).execute()
            if not response.data:
                raise AppError("Failed to create order items")
        except Exception:
            client.table("orders").delete().eq("id", order["id"]).execute()
            logger.error(f"❌ Order items insert failed, order {order['order_number']} rolled back")
            raise

        logger.info(f"🧾 Order {order['order_number']} created: ₦{total:,.2f} ({len(items)} items)")
        event_manager.publish("order_created", order_summary(order))
        return {**order, "items": response.data}

    @staticmethod
    def get_order(order_id) -> Dict:
        order = first_row(get_client().table("orders").select("*").eq("id", order_id).limit(1).execute())
        if not order:
            raise NotFound("Order not found")
        return OrderService._with_items([order])[0]

    @staticmethod
    def get_by_number(order_number: str) -> Dict:
        order = first_row(get_client().table("orders").select("*").eq("order_number", order_number).limit(1).execute())
        if not order:
            raise NotFound("Order not found")
        return OrderService._with_items([order])[0]

    @staticmethod
    def list_orders(user: Dict, limit: int = 50, status: Optional[str] = None) -> List[Dict]:
        """Staff with orders:view see every order, everyone else their own"""
        query = get_client().table("orders").select("*")
        if not has_permission(user["role"], "orders", "view"):
            query = query.eq("user_id", user["id"])
        if status:
            query = query.eq("status", status)
        response = query.order("created_at", desc=True).limit(limit).execute()
        return OrderService._with_items(response.data or [])

    @staticmethod
    def track(token: str) -> Dict:
        if not token or len(token) < MIN_TRACKING_TOKEN_LENGTH:
            raise ValidationFailed("Invalid tracking token")
        order = first_row(get_client().table("orders").select("*").eq("tracking_token", token).limit(1).execute())
        if not order:
            raise NotFound("Order not found")

        order = OrderService._with_items([order])[0]
        return {
            "order": order,
            "status_message": order_state.status_message(order["status"], order["payment_status"]),
            "can_cancel": order_state.can_cancel(order),
            "can_reorder": order_state.can_reorder(order),
        }

    @staticmethod
    def record_history(order_id, from_status: Optional[str], to_status: str, changed_by=None, note: Optional[str] = None):
        get_client().table("order_status_history").insert({
            "order_id": order_id,
            "from_status": from_status,
            "to_status": to_status,
            "changed_by": changed_by,
            "note": note,
            "created_at": iso(utcnow()),
        }).execute()

    @staticmethod
    def update_status(order_id, new_status: str, actor: Dict, note: Optional[str] = None) -> Dict:
        """
        Move an order to a new status.

        Raises:
            Conflict: transition not allowed, or the order changed underneath us
            Forbidden: the actor's role cannot set this status
        """
        order = OrderService.get_order(order_id)
        current = order["status"]
        order_state.check_transition(current, new_status, actor.get("role"))
        if new_status == current:
            return order

        updated = first_row(
            get_client().table("orders")
            .update({"status": new_status, "updated_at": iso(utcnow())})
            .eq("id", order_id)
            .eq("status", current)
            .execute()
        )
        if not updated:
            raise Conflict("Order was updated by someone else, reload and try again")

        logger.info(f"📦 Order {order['order_number']}: {current} → {new_status} by {actor.get('id')}")
        OrderService.record_history(order_id, current, new_status, actor.get("id"), note)

        if new_status == "cancelled" and order.get("payment_status") != "paid":
            try:
                GiftCardService.restore_for_order(order)
            except Exception as e:
                logger.error(f"❌ Gift card restore failed for order {order_id}: {e}")

        event_manager.publish("order_status", order_summary(updated))
        if new_status in order_state.CUSTOMER_VISIBLE_STATUSES:
            notifications.send_order_status_update(updated, order_state.STATUS_MESSAGES[new_status])

        return {**updated, "items": order["items"]}

    @staticmethod
    def cancel_by_customer(order_id, user: Dict) -> Dict:
        order = OrderService.get_order(order_id)
        if order.get("user_id") != user["id"]:
            raise NotFound("Order not found")
        if not order_state.can_cancel(order):
            raise Conflict("This order can no longer be cancelled")
        return OrderService.update_status(order_id, "cancelled", {"id": user["id"], "role": "customer"}, "Cancelled by customer")

    @staticmethod
    async def refund(order_id, actor: Dict, reason: str, paystack: PaystackClient, amount: Optional[float] = None) -> Dict:
        """
        Refund a paid order through Paystack and unwind its ledgers
        (earned points reversed, redeemed gift card balance restored).
        """
        order = OrderService.get_order(order_id)
        if not order_state.can_transition_payment(order.get("payment_status"), "refunded"):
            raise Conflict("Only paid orders can be refunded")
        if order.get("payment_gateway") not in (None, "paystack"):
            raise ValidationFailed(f"Refunds for {order['payment_gateway']} payments are not supported here")
        if not order.get("payment_reference"):
            raise ValidationFailed("Order has no payment reference")
        if amount is not None and amount > float(order["total"]):
            raise ValidationFailed("Refund amount exceeds order total")

        refund = await paystack.refund(order["payment_reference"], amount)

        client = get_client()
        updated = first_row(
            client.table("orders")
            .update({"payment_status": "refunded", "updated_at": iso(utcnow())})
            .eq("id", order_id)
            .in_("payment_status", order_state.payment_sources("refunded"))
            .execute()
        )
        if not updated:
            raise Conflict("Order payment status changed during refund")

        OrderService.record_history(order_id, order["status"], order["status"], actor.get("id"), f"Refunded: {reason}")

        ledger = {"points_reversed": 0, "gift_card_restored": 0.0}
        try:
            ledger["points_reversed"] = PointsService.reverse_for_order(order_id)
        except Exception as e:
            logger.error(f"❌ Points reversal failed for order {order_id}: {e}")
        try:
            ledger["gift_card_restored"] = GiftCardService.restore_for_order(order)
        except Exception as e:
            logger.error(f"❌ Gift card restore failed for order {order_id}: {e}")

        logger.info(f"↩️ Order {order['order_number']} refunded by {actor.get('id')}: {reason}")
        return {"order": {**updated, "items": order["items"]}, "refund": refund, **ledger}
