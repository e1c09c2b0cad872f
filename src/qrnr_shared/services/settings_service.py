"""
Per-store singleton settings and the daily payment code.
"""

from __future__ import annotations

import secrets
from datetime import date, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from qrnr_shared.constants import KST
from qrnr_shared.db import get_session
from qrnr_shared.errors import NotFoundError
from qrnr_shared.logging_config import get_logger
from qrnr_shared.models import PaymentCode, Store, StoreSettings
from qrnr_shared.serializers import serialize_payment_code, serialize_settings

logger = get_logger(__name__)


def _require_store(session, store_id: str) -> None:
    if session.get(Store, store_id) is None:
        raise NotFoundError("존재하지 않는 매장입니다.", detail_code="STORE_NOT_FOUND")


def _today_kst() -> date:
    return datetime.now(KST).date()


def _new_code() -> str:
    return f"{secrets.randbelow(10_000):04d}"


def get_settings(store_id: str) -> dict[str, Any]:
    with get_session() as session:
        _require_store(session, store_id)
        return serialize_settings(store_id, session.get(StoreSettings, store_id))


def put_settings(store_id: str, owner_bank: dict[str, Any]) -> dict[str, Any]:
    """Insert or replace the store's owner bank info."""
    with get_session() as session:
        _require_store(session, store_id)
        settings = session.get(StoreSettings, store_id)
        if settings is None:
            settings = StoreSettings(store_id=store_id)
            session.add(settings)
        settings.owner_bank = dict(owner_bank)
        session.flush()
        return serialize_settings(store_id, settings)


def _find_code(session, store_id: str, day: date) -> PaymentCode | None:
    return session.execute(
        select(PaymentCode).where(PaymentCode.store_id == store_id, PaymentCode.code_date == day)
    ).scalar_one_or_none()


def get_or_create_payment_code(store_id: str, today: date | None = None) -> dict[str, Any]:
    """Today's (KST) code, created on first access."""
    day = today or _today_kst()
    try:
        with get_session() as session:
            _require_store(session, store_id)
            payment_code = _find_code(session, store_id, day)
            if payment_code is None:
                payment_code = PaymentCode(store_id=store_id, code_date=day, code=_new_code())
                session.add(payment_code)
                session.flush()
            return serialize_payment_code(payment_code)
    except IntegrityError:
        # Another request created today's code first
        with get_session() as session:
            return serialize_payment_code(_find_code(session, store_id, day))


def rotate_payment_code(store_id: str, today: date | None = None) -> dict[str, Any]:
    """Replace today's code with a new one."""
    day = today or _today_kst()
    with get_session() as session:
        _require_store(session, store_id)
        payment_code = _find_code(session, store_id, day)
        if payment_code is None:
            payment_code = PaymentCode(store_id=store_id, code_date=day, code=_new_code())
            session.add(payment_code)
        else:
            previous = payment_code.code
            while payment_code.code == previous:
                payment_code.code = _new_code()
        session.flush()
        data = serialize_payment_code(payment_code)

    logger.info(f"Payment code rotated for store {store_id}")
    return data
