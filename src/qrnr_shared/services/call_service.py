"""
Staff call logs ("call staff" button on the table page).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update

from qrnr_shared.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, CallStatus
from qrnr_shared.db import get_session
from qrnr_shared.errors import ConflictError, NotFoundError, ValidationError
from qrnr_shared.logging_config import get_logger
from qrnr_shared.models import CallLog, Store
from qrnr_shared.realtime.publisher import EventPublisher
from qrnr_shared.serializers import serialize_call

logger = get_logger(__name__)


def create_call(
    store_id: str,
    table_no: str | None,
    message: str = "",
    publisher: EventPublisher | None = None,
) -> dict[str, Any]:
    with get_session() as session:
        if session.get(Store, store_id) is None:
            raise NotFoundError("존재하지 않는 매장입니다.", detail_code="STORE_NOT_FOUND")

        call = CallLog(store_id=store_id, table_no=table_no, message=message or "")
        session.add(call)
        session.flush()
        data = serialize_call(call)

    logger.info(f"Staff call from table {table_no or '-'} in store {store_id}")
    if publisher is not None:
        publisher.call_created(data)
    return data


def list_calls(
    store_id: str, status: str | None = None, limit: int = DEFAULT_PAGE_SIZE
) -> list[dict[str, Any]]:
    stmt = select(CallLog).where(CallLog.store_id == store_id)
    if status:
        try:
            stmt = stmt.where(CallLog.status == CallStatus(status).value)
        except ValueError:
            raise ValidationError(f"알 수 없는 호출 상태: {status}") from None

    stmt = stmt.order_by(CallLog.created_at.desc(), CallLog.id.desc()).limit(
        max(1, min(limit, MAX_PAGE_SIZE))
    )
    with get_session() as session:
        return [serialize_call(call) for call in session.execute(stmt).scalars().all()]


def acknowledge_call(store_id: str, call_id: int) -> dict[str, Any]:
    """Flip a pending call to acknowledged. A second acknowledgement is a conflict."""
    with get_session() as session:
        result = session.execute(
            update(CallLog)
            .where(
                CallLog.id == call_id,
                CallLog.store_id == store_id,
                CallLog.status == CallStatus.PENDING.value,
            )
            .values(status=CallStatus.ACKNOWLEDGED.value, acknowledged_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )

        call = session.execute(
            select(CallLog).where(CallLog.id == call_id, CallLog.store_id == store_id)
        ).scalar_one_or_none()
        if call is None:
            raise NotFoundError("호출 내역을 찾을 수 없습니다.", details={"callId": call_id})
        if result.rowcount != 1:
            raise ConflictError("이미 확인된 호출입니다.", detail_code="ALREADY_ACKNOWLEDGED")
        return serialize_call(call)
