"""
Domain logic around orders for the admin console and the ordering pages.

Orders are never deleted. Every applied status change inserts one
``OrderStatusHistory`` row in the same transaction as a compare-and-set
``UPDATE ... WHERE status = :current``, so two admins racing on the same order
cannot both win or lose a history entry.
"""

from __future__ import annotations

import time
from datetime import date, datetime, time as dt_time, timedelta, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from qrnr_shared.constants import KST, OrderStatus, OrderType, PaymentStatus
from qrnr_shared.db import get_session
from qrnr_shared.errors import ConflictError, NotFoundError, ValidationError
from qrnr_shared.logging_config import LoggerAdapter, get_logger
from qrnr_shared.models import Order, OrderStatusHistory, Store
from qrnr_shared.realtime.publisher import EventPublisher
from qrnr_shared.schemas import READ_ONLY_META_KEYS, CreateOrderRequest, build_order_meta
from qrnr_shared.serializers import serialize_order
from qrnr_shared.services.order_state_machine import order_state_machine
from qrnr_shared.services.payment_providers import PaymentProvider

logger = get_logger(__name__)

MAX_ORDER_LIST = 500


def _store_logger(store_id: str) -> LoggerAdapter:
    return LoggerAdapter(logger, {"store_id": store_id})


def _new_order_no() -> str:
    return f"ORD-{int(time.time() * 1000)}"


def _get_store_order(session: Session, store_id: str, order_id: str) -> Order:
    order = session.execute(
        select(Order).where(Order.id == order_id, Order.store_id == store_id)
    ).scalar_one_or_none()
    if order is None:
        raise NotFoundError("주문을 찾을 수 없습니다.", details={"orderId": order_id})
    return order


def _lock_order(session: Session, order: Order) -> Order:
    """
    Re-read ``order`` with a row lock (no-op on SQLite).

    ``populate_existing`` overwrites the identity-mapped instance with the row
    as read under the lock, so a meta merge never starts from a stale copy.
    """
    return session.execute(
        select(Order)
        .where(Order.id == order.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one()


def _apply_status(session: Session, order: Order, target: OrderStatus) -> None:
    """Compare-and-set the status and append the history row."""
    expected = order.status
    result = session.execute(
        update(Order)
        .where(Order.id == order.id, Order.status == expected)
        .values(status=target.value, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError(
            "다른 사용자가 먼저 주문 상태를 변경했습니다. 새로고침 후 다시 시도하세요.",
            detail_code="STATUS_CHANGED",
            details={"orderId": order.id, "expected": expected},
            retryable=True,
        )
    session.add(OrderStatusHistory(order_id=order.id, status=target.value))
    session.flush()
    session.expire(order, ["status", "updated_at", "history"])


def _merge_meta(order: Order, patch: dict[str, Any]) -> dict[str, Any]:
    read_only = READ_ONLY_META_KEYS & patch.keys()
    if read_only:
        raise ValidationError(
            f"수정할 수 없는 필드입니다: {', '.join(sorted(read_only))}",
            details={"fields": sorted(read_only)},
        )
    return build_order_meta(order.type, {**(order.meta or {}), **patch})


def _parse_bound(value: str | None, end: bool) -> datetime | None:
    """
    Parse a ``from``/``to`` filter.

    Accepts ISO dates or datetimes. Naive values are store-local (KST); a bare
    ``to`` date covers that whole day.
    """
    if not value:
        return None
    try:
        if len(value) == 10:
            day = date.fromisoformat(value)
            parsed = datetime.combine(day + timedelta(days=1) if end else day, dt_time.min)
        else:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"날짜 형식이 올바르지 않습니다: {value}") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=KST)
    return parsed.astimezone(timezone.utc)


def create_order(
    store_id: str, payload: dict[str, Any], publisher: EventPublisher | None = None
) -> dict[str, Any]:
    """
    Validate and persist a new order, then announce it on the store channel.

    Raises:
        pydantic.ValidationError: malformed payload (e.g. ``amount: "abc"``)
        NotFoundError: unknown store
        ConflictError: ``orderNo`` already used in this store (retryable)
    """
    request = CreateOrderRequest.model_validate(payload)
    meta = build_order_meta(request.type, request.meta_payload())
    status = order_state_machine.initial_status(request.type)
    order_no = request.order_no or _new_order_no()

    try:
        with get_session() as session:
            if session.get(Store, store_id) is None:
                raise NotFoundError("존재하지 않는 매장입니다.", detail_code="STORE_NOT_FOUND")

            order = Order(
                store_id=store_id,
                order_no=order_no,
                type=request.type.value,
                status=status.value,
                table_no=request.table_no,
                amount=request.amount,
                meta=meta,
                history=[OrderStatusHistory(status=status.value)],
            )
            session.add(order)
            session.flush()
            data = serialize_order(order)
    except IntegrityError as exc:
        _store_logger(store_id).info(f"Duplicate order number {order_no}")
        raise ConflictError(
            "이미 사용된 주문번호입니다. 다시 시도하세요.",
            details={"orderNo": order_no},
            retryable=True,
        ) from exc

    _store_logger(store_id).info(f"Order {data['orderNo']} created ({data['type']}, {data['amount']})")
    if publisher is not None:
        publisher.order_created(data)
    return data


def list_orders(
    store_id: str,
    order_type: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    status: str | None = None,
    limit: int = MAX_ORDER_LIST,
) -> list[dict[str, Any]]:
    """Orders of ``store_id`` only, newest first."""
    stmt = select(Order).where(Order.store_id == store_id)

    if order_type:
        try:
            stmt = stmt.where(Order.type == OrderType(order_type).value)
        except ValueError:
            raise ValidationError(f"알 수 없는 주문 유형: {order_type}") from None
    if status:
        stmt = stmt.where(Order.status == status)

    lower = _parse_bound(date_from, end=False)
    upper = _parse_bound(date_to, end=True)
    if lower is not None:
        stmt = stmt.where(Order.created_at >= lower)
    if upper is not None:
        # A bare date was already moved to the next midnight
        if len(date_to) == 10:
            stmt = stmt.where(Order.created_at < upper)
        else:
            stmt = stmt.where(Order.created_at <= upper)

    stmt = stmt.order_by(Order.created_at.desc(), Order.id.desc()).limit(min(limit, MAX_ORDER_LIST))

    with get_session() as session:
        orders = session.execute(stmt).scalars().all()
        return [serialize_order(order) for order in orders]


def get_order(store_id: str, order_id: str) -> dict[str, Any]:
    with get_session() as session:
        return serialize_order(_get_store_order(session, store_id, order_id))


def update_order(
    store_id: str,
    order_id: str,
    status: str | None = None,
    meta: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Patch an order's status and/or meta.

    Meta is shallow-merged under a row lock and re-validated against the
    order type. Re-applying the current status changes nothing.
    """
    if status is None and meta is None:
        raise ValidationError("status 또는 meta 가 필요합니다.")

    with get_session() as session:
        order = _get_store_order(session, store_id, order_id)

        if meta is not None:
            locked = _lock_order(session, order)
            locked.meta = _merge_meta(locked, meta)
            session.flush()

        if status is not None:
            target = order_state_machine.parse_status(order.type, status)
            if order_state_machine.validate_transition(order.type, order.status, target):
                _apply_status(session, order, target)
                _store_logger(store_id).info(f"Order {order.order_no} -> {target.value}")

        session.refresh(order)
        return serialize_order(order)


def confirm_payment(
    store_id: str,
    order_id: str,
    payment_key: str,
    amount: int,
    provider: PaymentProvider,
    method: str | None = None,
) -> dict[str, Any]:
    """
    Confirm a provider payment for an order.

    The amount must equal the stored order amount. Provider failures propagate
    as ``PaymentError`` untouched. On success the payment is recorded in
    ``meta.payment`` and a reserve order waiting for payment moves to 주문접수.
    """
    with get_session() as session:
        order = _get_store_order(session, store_id, order_id)
        if order.amount != amount:
            raise ValidationError(
                "결제 금액이 주문 금액과 일치하지 않습니다.",
                detail_code="AMOUNT_MISMATCH",
                details={"expected": order.amount, "received": amount},
            )
        if (order.meta or {}).get("payment", {}).get("status") == PaymentStatus.PAID.value:
            raise ConflictError("이미 결제가 완료된 주문입니다.", detail_code="ALREADY_PAID")
        if order_state_machine.is_terminal(order.status):
            raise ConflictError(
                f"종료된 주문은 결제할 수 없습니다: {order.status}", detail_code="INVALID_TRANSITION"
            )
        order_no = order.order_no

    result = provider.confirm(payment_key, order_no, amount)

    with get_session() as session:
        order = _lock_order(session, _get_store_order(session, store_id, order_id))
        order.meta = _merge_meta(
            order,
            {
                "payment": {
                    "status": PaymentStatus.PAID.value,
                    "paymentKey": result.payment_key,
                    "method": result.method or method,
                    "approvedAt": result.approved_at,
                }
            },
        )
        session.flush()

        if (
            order.type == OrderType.RESERVE.value
            and order.status == OrderStatus.PAYMENT_UNCONFIRMED.value
        ):
            _apply_status(session, order, OrderStatus.RECEIVED)

        session.refresh(order)
        data = serialize_order(order)

    _store_logger(store_id).info(f"Payment confirmed for order {order_no}")
    return data


def cancel_payment(
    store_id: str,
    order_id: str,
    provider: PaymentProvider,
    reason: str = "관리자 취소",
) -> dict[str, Any]:
    """
    Cancel an order's payment and move the order to its cancelled status.

    Paid orders are refunded through the provider first; a provider failure
    leaves the order untouched.
    """
    with get_session() as session:
        order = _get_store_order(session, store_id, order_id)
        payment = (order.meta or {}).get("payment") or {}
        if payment.get("status") == PaymentStatus.CANCELLED.value:
            raise ConflictError("이미 취소된 결제입니다.", detail_code="ALREADY_CANCELLED")

        target = (
            OrderStatus.CANCELLED
            if order.type == OrderType.RESERVE.value
            else OrderStatus.PAYMENT_CANCELLED
        )
        order_state_machine.validate_transition(order.type, order.status, target)
        paid_key = (
            payment.get("paymentKey") if payment.get("status") == PaymentStatus.PAID.value else None
        )

    if paid_key:
        provider.cancel(paid_key, reason)

    with get_session() as session:
        order = _lock_order(session, _get_store_order(session, store_id, order_id))
        order.meta = _merge_meta(
            order,
            {"payment": {**payment, "status": PaymentStatus.CANCELLED.value}},
        )
        session.flush()

        if order_state_machine.validate_transition(order.type, order.status, target):
            _apply_status(session, order, target)

        session.refresh(order)
        data = serialize_order(order)

    _store_logger(store_id).info(f"Payment cancelled for order {data['orderNo']}")
    return data
