"""Notification fan-out — delivers one order status notice to every channel.

Channels are independent and best-effort:

* live: ``order-status-updated`` to the customer's user room, the order room
  and the seller room, plus ``order-accepted`` / ``order-rejected`` /
  ``order-cancelled`` for the customer, or ``new-order`` for the seller when
  the order is first placed;
* email: only when the customer left an address;
* WhatsApp: only when the adapter is configured and a phone number exists.

Email and WhatsApp calls each run on their own small pool with a per-call
timeout. A timed out send keeps its thread until the adapter returns, so a
channel whose threads are all stuck fails new sends at once instead of
queueing them behind the hung ones; the other channel is unaffected.
A failure or timeout on one channel is recorded in the delivery log and
logged; it never stops the other channels and never touches the order.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout

import structlog

from marketplace.config import get_settings
from marketplace.errors import NotificationDeliveryFailed
from marketplace.notification.channel import EMAIL, LIVE, WHATSAPP, get_channel
from marketplace.notification.delivery_log import DeliveryLog, NotificationEvent, get_delivery_log
from marketplace.notification.notice import StatusNotice
from marketplace.notification.templates import STATUS_EVENTS, RenderedNotice, render

logger = structlog.get_logger(__name__)

STATUS_UPDATED = "order-status-updated"
NEW_ORDER = "new-order"


def user_room(customer_id: str) -> str:
    return f"user-{customer_id}"


def order_room(order_ref: str) -> str:
    return f"order-{order_ref}"


def seller_room(seller_id: str) -> str:
    return f"seller-{seller_id}"


def live_payload(notice: StatusNotice, rendered: RenderedNotice) -> dict:
    payload = {
        "orderId": notice.order_id,
        "orderMongoId": notice.order_ref,
        "internalId": notice.order_ref,
        "status": notice.status,
        "orderStatus": notice.status,
        "message": rendered.message,
        "title": rendered.title,
        "timestamp": notice.occurred_at.isoformat(),
    }
    if notice.cancellation_reason:
        payload["cancellationReason"] = notice.cancellation_reason
        payload["cancelledBy"] = notice.cancelled_by
    if notice.placed:
        payload.update(
            {
                "customerName": notice.customer_name,
                "itemName": notice.item_name,
                "quantity": notice.quantity,
                "totalAmount": notice.total_amount,
                "paymentMethod": notice.payment_method,
            }
        )
    return payload


def live_targets(notice: StatusNotice) -> list[tuple[str, str]]:
    """(room, event) pairs for a notice, in delivery order."""
    customer_rooms = [user_room(notice.customer_id), order_room(notice.order_ref)]
    if notice.placed:
        return [(seller_room(notice.seller_id), NEW_ORDER)] + [(room, STATUS_UPDATED) for room in customer_rooms]

    targets = [(room, STATUS_UPDATED) for room in customer_rooms]
    targets.append((seller_room(notice.seller_id), STATUS_UPDATED))
    extra = STATUS_EVENTS.get(notice.status)
    if extra:
        targets.extend((room, extra) for room in customer_rooms)
    return targets


def email_body(notice: StatusNotice, rendered: RenderedNotice) -> str:
    lines = [
        rendered.body,
        "",
        f"Order ID: {notice.order_id}",
    ]
    if notice.item_name:
        lines.append(f"Item: {notice.item_name} x {notice.quantity or 1}")
    lines.append(f"Total: Rs. {notice.total_amount:.2f}")
    lines += ["", "Thank you for ordering with TasteSphere!"]
    return "\n".join(lines)


def whatsapp_body(notice: StatusNotice, rendered: RenderedNotice) -> str:
    return f"*{rendered.title}*\n\n{rendered.body}\n\nOrder ID: {notice.order_id}\n- TasteSphere"


class NotificationFanout:
    def __init__(
        self,
        channel_timeout: float | None = None,
        max_channel_workers: int = 4,
        log: DeliveryLog | None = None,
    ) -> None:
        settings = get_settings()
        self.channel_timeout = channel_timeout or settings.NOTIFICATION_CHANNEL_TIMEOUT_SECONDS
        self._workers = max_channel_workers
        self._pools = {
            channel: ThreadPoolExecutor(max_workers=max_channel_workers, thread_name_prefix=f"notify-{channel}")
            for channel in (EMAIL, WHATSAPP)
        }
        self._in_flight = {EMAIL: 0, WHATSAPP: 0}
        self._in_flight_lock = threading.Lock()
        self._log = log

    @property
    def log(self) -> DeliveryLog:
        return self._log or get_delivery_log()

    def dispatch(self, notice: StatusNotice) -> list[NotificationEvent]:
        """Deliver ``notice`` on every applicable channel and return what was attempted."""
        rendered = render(notice)
        records = self._publish_live(notice, rendered)

        email_record = self._send_email(notice, rendered)
        if email_record is not None:
            records.append(email_record)

        whatsapp_record = self._send_whatsapp(notice, rendered)
        if whatsapp_record is not None:
            records.append(whatsapp_record)

        logger.info(
            "Notification fan-out completed",
            order_id=notice.order_id,
            status=notice.status,
            attempted=len(records),
            failed=sum(1 for r in records if not r.delivered),
        )
        return records

    def close(self) -> None:
        for pool in self._pools.values():
            pool.shutdown(wait=False, cancel_futures=True)

    # -------------------------------------------------------------------
    # Channels
    # -------------------------------------------------------------------
    def _publish_live(self, notice: StatusNotice, rendered: RenderedNotice) -> list[NotificationEvent]:
        bus = get_channel(LIVE)
        payload = live_payload(notice, rendered)
        records = []
        for room, event in live_targets(notice):
            try:
                bus.broadcast(room, event, payload)
            except Exception as exc:
                logger.warning(
                    "Live broadcast failed",
                    order_id=notice.order_id,
                    room=room,
                    live_event=event,
                    error=str(exc),
                )
                records.append(self._record(LIVE, room, payload, notice, event, error=str(exc)))
            else:
                records.append(self._record(LIVE, room, payload, notice, event))
        return records

    def _send_email(self, notice: StatusNotice, rendered: RenderedNotice) -> NotificationEvent | None:
        if not notice.customer_email:
            return None

        adapter = get_channel(EMAIL)
        payload = {"subject": rendered.title, "body": email_body(notice, rendered)}
        return self._deliver(
            EMAIL,
            notice.customer_email,
            payload,
            notice,
            lambda: adapter.send(to=notice.customer_email, subject=payload["subject"], body=payload["body"]),
        )

    def _send_whatsapp(self, notice: StatusNotice, rendered: RenderedNotice) -> NotificationEvent | None:
        adapter = get_channel(WHATSAPP)
        if not adapter.configured or not notice.customer_phone:
            logger.debug(
                "WhatsApp skipped",
                order_id=notice.order_id,
                configured=adapter.configured,
                has_phone=bool(notice.customer_phone),
            )
            return None

        payload = {"body": whatsapp_body(notice, rendered)}
        return self._deliver(
            WHATSAPP,
            notice.customer_phone,
            payload,
            notice,
            lambda: adapter.send(to=notice.customer_phone, body=payload["body"]),
        )

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _deliver(self, channel: str, recipient: str, payload: dict, notice: StatusNotice, send) -> NotificationEvent:
        try:
            self._call(channel, recipient, send)
        except NotificationDeliveryFailed as exc:
            logger.warning(
                "Notification delivery failed",
                order_id=notice.order_id,
                channel=channel,
                recipient=recipient,
                error=exc.reason,
            )
            return self._record(channel, recipient, payload, notice, error=exc.reason)
        return self._record(channel, recipient, payload, notice)

    def _call(self, channel: str, recipient: str, send) -> dict:
        with self._in_flight_lock:
            if self._in_flight[channel] >= self._workers:
                raise NotificationDeliveryFailed(channel, recipient, "channel busy with unfinished sends")
            self._in_flight[channel] += 1

        try:
            future = self._pools[channel].submit(send)
        except RuntimeError as exc:
            self._release(channel)
            raise NotificationDeliveryFailed(channel, recipient, str(exc)) from exc
        future.add_done_callback(lambda _: self._release(channel))

        try:
            result = future.result(timeout=self.channel_timeout)
        except FutureTimeout:
            raise NotificationDeliveryFailed(
                channel, recipient, f"timed out after {self.channel_timeout:g}s"
            ) from None
        except Exception as exc:
            raise NotificationDeliveryFailed(channel, recipient, str(exc)) from exc

        if not result or result.get("status") != "sent":
            reason = (result or {}).get("error") or "unknown delivery error"
            raise NotificationDeliveryFailed(channel, recipient, reason)
        return result

    def _release(self, channel: str) -> None:
        with self._in_flight_lock:
            self._in_flight[channel] -= 1

    def _record(
        self,
        channel: str,
        recipient: str,
        payload: dict,
        notice: StatusNotice,
        event_name: str | None = None,
        error: str | None = None,
    ) -> NotificationEvent:
        return self.log.record(
            NotificationEvent(
                target_channel=channel,
                recipient_key=recipient,
                payload=payload,
                delivered=error is None,
                order_id=notice.order_id,
                status=notice.status,
                event_name=event_name,
                error=error,
            )
        )
