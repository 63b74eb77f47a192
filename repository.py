from __future__ import annotations

import logging
from typing import List
from datetime import date, datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, Date, UniqueConstraint, func, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import NullPool, StaticPool
from sqlmodel import SQLModel, Field, Session, create_engine, select

from domain import EarningsRecord, ShiftInput, Summary
from errors import DuplicateRecordError, RecordNotFoundError, StoreError
from services import EarningsCalculator

LOGGER = logging.getLogger(__name__)

UNIQUE_DAY_CONSTRAINT = "uq_daily_earnings_account_date"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class AccountDB(SQLModel, table=True):
    __tablename__ = "accounts"

    id: str = Field(default_factory=_new_id, primary_key=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    created_at: datetime = Field(default_factory=_utcnow)


class EarningsRecordDB(SQLModel, table=True):
    __tablename__ = "daily_earnings"
    __table_args__ = (UniqueConstraint("account_id", "date", name=UNIQUE_DAY_CONSTRAINT),)

    id: str = Field(default_factory=_new_id, primary_key=True)
    account_id: str = Field(index=True, foreign_key="accounts.id")
    work_date: date = Field(sa_column=Column("date", Date, nullable=False, index=True))
    morning_cash: int
    evening_cash: int
    total_orders: int
    cash_orders: int
    online_tips: int = 0
    cash_earnings: int = 0
    online_earnings: int = 0
    bonus_earnings: int = 0
    total_earnings: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow, sa_column_kwargs={"onupdate": _utcnow})

    def to_domain(self) -> EarningsRecord:
        return EarningsRecord(
            id=self.id,
            account_id=self.account_id,
            work_date=self.work_date,
            morning_cash=self.morning_cash,
            evening_cash=self.evening_cash,
            total_orders=self.total_orders,
            cash_orders=self.cash_orders,
            online_tips=self.online_tips,
            cash_earnings=self.cash_earnings,
            online_earnings=self.online_earnings,
            bonus_earnings=self.bonus_earnings,
            total_earnings=self.total_earnings,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


def build_engine(db_url: str, echo: bool = False):
    is_sqlite = db_url.startswith("sqlite")
    kwargs = {
        "echo": echo,
        "pool_pre_ping": True,
        "connect_args": {},
    }
    if is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False}
        # En memoria: una sola conexión compartida, si no cada sesión ve una BD vacía
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    else:
        # Serverless PG (Neon/Supabase): sin pool local y con timeout
        kwargs["poolclass"] = NullPool
        kwargs["connect_args"] = {"connect_timeout": 10}
        # Asegura SSL si no está en la URL
        if "sslmode=" not in db_url:
            db_url += ("&" if "?" in db_url else "?") + "sslmode=require"
    return create_engine(db_url, **kwargs)


class EarningsRepository:
    """Registros diarios por cuenta. Cada operación solo ve las filas de su cuenta.

    En producción NO hacer fallback a SQLite.
    """
    def __init__(self, url: str = "sqlite:///earnings.db", echo: bool = False,
                 calculator: EarningsCalculator | None = None):
        self.primary_url = url
        self.engine = build_engine(url, echo=echo)
        self.calculator = calculator or EarningsCalculator()

        # Si es Postgres, valida conexión (fail-fast si falla)
        if not url.startswith("sqlite"):
            try:
                with self.engine.connect() as conn:
                    conn.execute(text("select 1"))
            except SQLAlchemyError as e:
                raise StoreError(f"No se pudo conectar a Postgres: {e}") from e

        # Crea tablas si no existen
        SQLModel.metadata.create_all(self.engine)

    def list(self, account_id: str) -> List[EarningsRecord]:
        try:
            with Session(self.engine) as session:
                rows = session.exec(
                    select(EarningsRecordDB)
                    .where(EarningsRecordDB.account_id == account_id)
                    .order_by(EarningsRecordDB.work_date.desc())
                ).all()
                return [r.to_domain() for r in rows]
        except SQLAlchemyError as e:
            LOGGER.error("list failed for account %s: %s", account_id, e)
            raise StoreError(f"No se pudieron cargar los registros: {e}") from e

    def exists(self, account_id: str, d: date) -> bool:
        try:
            with Session(self.engine) as session:
                row = session.exec(
                    select(EarningsRecordDB.id).where(
                        EarningsRecordDB.account_id == account_id,
                        EarningsRecordDB.work_date == d,
                    )
                ).first()
                return row is not None
        except SQLAlchemyError as e:
            raise StoreError(str(e)) from e

    def insert(self, account_id: str, entry: ShiftInput | EarningsRecord) -> EarningsRecord:
        """Stores one day. Derived fields are always computed here from the raw counters."""
        if isinstance(entry, EarningsRecord):
            if entry.account_id != account_id:
                raise StoreError("El registro pertenece a otra cuenta.")
            entry = ShiftInput(
                work_date=entry.work_date,
                morning_cash=entry.morning_cash,
                evening_cash=entry.evening_cash,
                total_orders=entry.total_orders,
                cash_orders=entry.cash_orders,
                online_tips=entry.online_tips,
            )
        record = self.calculator.complete_record(entry, account_id)

        row = EarningsRecordDB(
            account_id=account_id,
            work_date=record.work_date,
            morning_cash=record.morning_cash,
            evening_cash=record.evening_cash,
            total_orders=record.total_orders,
            cash_orders=record.cash_orders,
            online_tips=record.online_tips,
            cash_earnings=record.cash_earnings,
            online_earnings=record.online_earnings,
            bonus_earnings=record.bonus_earnings,
            total_earnings=record.total_earnings,
        )
        try:
            with Session(self.engine) as session:
                session.add(row)
                session.commit()
                session.refresh(row)
                stored = row.to_domain()
        except IntegrityError as e:
            if self._is_duplicate_day(e, account_id, record.work_date):
                LOGGER.warning("duplicate day %s for account %s", record.work_date, account_id)
                raise DuplicateRecordError(
                    f"Ya existe un registro para el {record.work_date.isoformat()}."
                ) from e
            LOGGER.error("insert rejected for account %s: %s", account_id, e)
            raise StoreError(f"Error al guardar: {e.orig}") from e
        except SQLAlchemyError as e:
            LOGGER.error("insert failed for account %s: %s", account_id, e)
            raise StoreError(f"Error al guardar: {e}") from e

        LOGGER.info("stored %s for account %s (total=%s)", stored.work_date, account_id, stored.total_earnings)
        return stored

    def _is_duplicate_day(self, error: IntegrityError, account_id: str, d: date) -> bool:
        # Postgres nombra la restricción; SQLite no, así que se comprueba la fila
        if UNIQUE_DAY_CONSTRAINT in str(error.orig):
            return True
        return self.exists(account_id, d)

    def delete(self, account_id: str, record_id: str) -> None:
        try:
            with Session(self.engine) as session:
                row = session.exec(
                    select(EarningsRecordDB).where(
                        EarningsRecordDB.id == record_id,
                        EarningsRecordDB.account_id == account_id,
                    )
                ).first()
                if row is None:
                    raise RecordNotFoundError("El registro no existe.")
                session.delete(row)
                session.commit()
        except SQLAlchemyError as e:
            LOGGER.error("delete failed for %s: %s", record_id, e)
            raise StoreError(f"Error al eliminar: {e}") from e
        LOGGER.info("deleted record %s for account %s", record_id, account_id)

    def summary(self, account_id: str) -> Summary:
        """Totales de la cuenta calculados en la base de datos (ceros si no hay filas)."""
        t = EarningsRecordDB
        stmt = select(
            func.coalesce(func.sum(t.online_earnings), 0),
            func.coalesce(func.sum(t.bonus_earnings), 0),
            func.coalesce(func.sum(t.cash_earnings), 0),
            func.coalesce(func.sum(t.online_tips), 0),
            func.coalesce(func.sum(t.total_earnings + t.online_tips), 0),
        ).where(t.account_id == account_id)
        try:
            with Session(self.engine) as session:
                online, bonus, cash, tips, grand = session.exec(stmt).one()
        except SQLAlchemyError as e:
            LOGGER.error("summary failed for account %s: %s", account_id, e)
            raise StoreError(f"No se pudo calcular el resumen: {e}") from e
        return Summary(
            total_online_earnings=int(online),
            total_bonus_earnings=int(bonus),
            total_cash_earnings=int(cash),
            total_online_tips=int(tips),
            grand_total_earnings=int(grand),
        )


__all__ = ["AccountDB", "EarningsRecordDB", "EarningsRepository", "build_engine"]
