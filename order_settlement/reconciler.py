"""
reconciler.py — Webhook Event Reconciliation

Maps an authenticated processor event to the order bound to its invoice and
applies the corresponding status transition. Delivery is at-least-once and
unordered, so every step is idempotent:

- unknown invoice ids are acknowledged and dropped
- unrecognized event types are acknowledged and ignored
- transitions that would not move the order up the status lattice are no-ops

Nothing in here raises to the caller; the processor only ever learns that the
event was accepted.
"""

import logging
from typing import Optional

from .errors import NotFound, UnrecognizedEventKind
from .lifecycle import event_kind_for, next_status
from .models import InboundEvent
from .store import OrderStore

log = logging.getLogger(__name__)

# Bounds the compare-and-set retry loop; each retry means another transition won the race.
MAX_CAS_ATTEMPTS = 8


class EventReconciler:

    def __init__(self, store: OrderStore):
        self.store = store

    def apply(self, event: InboundEvent) -> Optional[str]:
        """
        Applies a verified event.

        Returns:
            Optional[str]: The resulting order status value if an order was
            matched, otherwise None.
        """
        order_id = self.store.find_by_invoice(event.invoice_id)
        if order_id is None:
            log.warning(f"[Invoice: {event.invoice_id}] Webhook for unknown invoice ({event.event_type}). Acknowledged.")
            return None

        log_prefix = f"[Order: {order_id}]"
        log.info(f"{log_prefix} Webhook event {event.event_type} (invoice {event.invoice_id}).")

        try:
            kind = event_kind_for(event.event_type)
        except UnrecognizedEventKind:
            log.warning(f"{log_prefix} Event type {event.event_type} ignored.")
            return self._current_status(order_id)

        for _ in range(MAX_CAS_ATTEMPTS):
            try:
                order = self.store.get(order_id)
            except NotFound:
                log.warning(f"{log_prefix} Order vanished during reconciliation. Acknowledged.")
                return None

            target = next_status(order.status, kind)
            if target is None:
                log.info(f"{log_prefix} {kind.value} event does not change status {order.status.value}. No-op.")
                return order.status.value

            if self.store.compare_and_set(order_id, order.status, target):
                log.info(f"{log_prefix} Status {order.status.value} -> {target.value}.")
                return target.value

        log.error(f"{log_prefix} Gave up applying {kind.value} after {MAX_CAS_ATTEMPTS} contended attempts.")
        return self._current_status(order_id)

    def _current_status(self, order_id: str) -> Optional[str]:
        try:
            return self.store.get(order_id).status.value
        except NotFound:
            return None
