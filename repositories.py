"""
Repositories over the flat-file store.

Products are a read-only seed catalog; orders, contacts and newsletter
subscribers are append-only.
"""

import secrets
import string
import time
from datetime import datetime, timezone
from typing import List, Optional

import structlog

from schemas import ContactCreate, OrderCreate
from storage import BaseStore, StorageError

logger = structlog.get_logger()

ORDER_ID_ALPHABET = string.digits + string.ascii_lowercase
ORDER_ID_SUFFIX_LEN = 9


class DuplicateSubscriberError(Exception):
    def __init__(self, email: str):
        super().__init__(f"{email} is already subscribed")
        self.email = email


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def epoch_millis() -> int:
    return int(time.time() * 1000)


def generate_order_id() -> str:
    suffix = "".join(secrets.choice(ORDER_ID_ALPHABET) for _ in range(ORDER_ID_SUFFIX_LEN))
    return f"UC-{epoch_millis()}-{suffix}"


class ProductRepository:
    collection = "products"

    def __init__(self, store: BaseStore):
        self.store = store

    def list(self) -> List[dict]:
        return self.store.load(self.collection)

    def get(self, product_id: int) -> Optional[dict]:
        for product in self.list():
            if isinstance(product, dict) and product.get("id") == product_id:
                return product
        return None


class OrderRepository:
    collection = "orders"

    def __init__(self, store: BaseStore):
        self.store = store

    def list(self) -> List[dict]:
        return self.store.load(self.collection)

    def recent(self) -> List[dict]:
        """Orders newest first, by stored creation time. Non-object rows are skipped."""
        orders = [o for o in self.list() if isinstance(o, dict)]
        return sorted(orders, key=lambda o: str(o.get("createdAt") or ""), reverse=True)

    def create(self, candidate: OrderCreate) -> dict:
        now = utc_now_iso()
        order = {
            "orderId": generate_order_id(),
            **candidate.to_record(),
            "status": "confirmed",
            "createdAt": now,
            "updatedAt": now,
        }
        with self.store.locked(self.collection):
            orders = self.store.load(self.collection, strict=True)
            orders.append(order)
            if not self.store.save(self.collection, orders):
                raise StorageError("Failed to write order data")

        logger.info(
            "order_created",
            order_id=order["orderId"],
            email=candidate.email,
            total=candidate.total,
            items_count=len(candidate.items),
        )
        logger.info("order_confirmation_email_skipped", order_id=order["orderId"])
        return order


class ContactRepository:
    collection = "contacts"

    def __init__(self, store: BaseStore):
        self.store = store

    def list(self) -> List[dict]:
        return self.store.load(self.collection)

    def create(self, payload: ContactCreate, ip: Optional[str] = None) -> dict:
        contact = {
            "id": epoch_millis(),
            **payload.to_record(),
            "createdAt": utc_now_iso(),
            "ip": ip,
        }
        with self.store.locked(self.collection):
            contacts = self.store.load(self.collection, strict=True)
            contacts.append(contact)
            if not self.store.save(self.collection, contacts):
                raise StorageError("Failed to save contact")

        logger.info("contact_saved", contact_id=contact["id"], email=payload.email)
        logger.info("contact_notification_email_skipped", contact_id=contact["id"])
        return contact


class NewsletterRepository:
    collection = "newsletter"

    def __init__(self, store: BaseStore, case_insensitive: bool = False):
        self.store = store
        self.case_insensitive = case_insensitive

    def list(self) -> List[dict]:
        return self.store.load(self.collection)

    def _key(self, email) -> str:
        email = email if isinstance(email, str) else ""
        return email.lower() if self.case_insensitive else email

    def is_subscribed(self, email: str, subscribers: Optional[List[dict]] = None) -> bool:
        if subscribers is None:
            subscribers = self.list()
        key = self._key(email)
        return any(isinstance(sub, dict) and self._key(sub.get("email")) == key for sub in subscribers)

    def subscribe(self, email: str, name: Optional[str] = None, ip: Optional[str] = None) -> dict:
        subscriber = {
            "id": epoch_millis(),
            "email": email,
            "name": name or "",
            "subscribedAt": utc_now_iso(),
            "ip": ip,
        }
        with self.store.locked(self.collection):
            subscribers = self.store.load(self.collection, strict=True)
            if self.is_subscribed(email, subscribers):
                logger.info("newsletter_duplicate", email=email)
                raise DuplicateSubscriberError(email)
            subscribers.append(subscriber)
            if not self.store.save(self.collection, subscribers):
                raise StorageError("Failed to save subscriber")

        logger.info("newsletter_subscribed", email=email)
        logger.info("welcome_email_skipped", email=email)
        return subscriber
