"""
store.py — Order Store

Owns the order records and the invoice -> order reverse index. This is the
only shared mutable state of the service; creation, invoice binding, status
polling and webhook delivery may all run concurrently against it.

Every write is a compare-and-set against the status the caller expects, done
under a per-order lock. Operations on different orders never contend.

`OrderStore` is the interface the workflow and the reconciler depend on, so
a durable backend can replace `InMemoryOrderStore` without touching the
state machine.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

from .errors import AlreadyBound, NotFound
from .lifecycle import OrderStatus
from .models import Order

log = logging.getLogger(__name__)


class OrderStore(ABC):
    """Storage interface for orders and their invoice bindings."""

    @abstractmethod
    def add(self, order: Order) -> None:
        """Stores a new order. The id must not be in use."""

    @abstractmethod
    def get(self, order_id: str) -> Order:
        """
        Returns the current record of an order.
        Raises:
            NotFound: If no order with this id exists.
        """

    @abstractmethod
    def find_by_invoice(self, invoice_id: str) -> Optional[str]:
        """Returns the id of the order bound to `invoice_id`, or None."""

    @abstractmethod
    def bind_invoice(self, order_id: str, invoice_id: str, checkout_link: Optional[str] = None) -> Order:
        """
        Atomically attaches an invoice to an order in `created` status and
        advances it to `pending_payment`.
        Raises:
            NotFound: If the order does not exist.
            AlreadyBound: If the order already has an invoice, or the invoice
                id is already bound to another order.
        """

    @abstractmethod
    def compare_and_set(self, order_id: str, expected: OrderStatus, new: OrderStatus) -> bool:
        """
        Sets the status to `new` only if it currently equals `expected`.
        Returns:
            bool: True if the transition was applied.
        Raises:
            NotFound: If the order does not exist.
        """


class InMemoryOrderStore(OrderStore):
    """
    Volatile, process-local order store.

    `_guard` protects the dictionaries themselves (insertions and lock
    creation); each order's read-modify-write runs under its own lock.
    """

    def __init__(self):
        self._orders: Dict[str, Order] = {}
        self._invoice_index: Dict[str, str] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, order_id: str) -> threading.Lock:
        with self._guard:
            if order_id not in self._orders:
                raise NotFound(order_id)
            return self._locks[order_id]

    def add(self, order: Order) -> None:
        with self._guard:
            if order.id in self._orders:
                raise ValueError(f"Order id already in use: {order.id}")
            self._orders[order.id] = order
            self._locks[order.id] = threading.Lock()

    def get(self, order_id: str) -> Order:
        with self._guard:
            try:
                return self._orders[order_id]
            except KeyError:
                raise NotFound(order_id) from None

    def find_by_invoice(self, invoice_id: str) -> Optional[str]:
        with self._guard:
            return self._invoice_index.get(invoice_id)

    def bind_invoice(self, order_id: str, invoice_id: str, checkout_link: Optional[str] = None) -> Order:
        with self._lock_for(order_id):
            order = self._orders[order_id]
            if order.invoice_id is not None or order.status is not OrderStatus.CREATED:
                raise AlreadyBound(order_id, order.invoice_id)
            with self._guard:
                if invoice_id in self._invoice_index:
                    raise AlreadyBound(order_id, invoice_id)
                updated = order.model_copy(update={
                    "invoice_id": invoice_id,
                    "checkout_link": checkout_link,
                    "status": OrderStatus.PENDING_PAYMENT,
                })
                self._orders[order_id] = updated
                self._invoice_index[invoice_id] = order_id
            return updated

    def compare_and_set(self, order_id: str, expected: OrderStatus, new: OrderStatus) -> bool:
        with self._lock_for(order_id):
            order = self._orders[order_id]
            if order.status is not expected:
                log.debug(f"[Order: {order_id}] CAS miss: expected {expected.value}, found {order.status.value}")
                return False
            with self._guard:
                self._orders[order_id] = order.model_copy(update={"status": new})
            return True

    def __len__(self):
        with self._guard:
            return len(self._orders)
