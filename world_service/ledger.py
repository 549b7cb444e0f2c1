"""
SQL-backed collaborators
- Character ledger: player balances used by purchases and sales
- Economic event store: inflationary/deflationary events used for inflation
"""

from datetime import datetime
from typing import List, Optional

from loguru import logger
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine

from .models.economy import EconomicEvent, ImpactType
from .models.world import utcnow

metadata = MetaData()

characters = Table(
    "characters",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(128), nullable=False),
    Column("money", Float, nullable=False, default=0.0),
    Column("is_online", Boolean, nullable=False, default=False),
)

economic_events = Table(
    "economic_events",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("event_type", String(64), nullable=False),
    Column("impact_type", String(16), nullable=False),
    Column("severity", Float, nullable=False),
    Column("description", String(512), nullable=False, default=""),
    Column("duration", Integer, nullable=False),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("expires_at", DateTime(timezone=True), nullable=False),
)


def create_tables(engine: Engine) -> None:
    """Create ledger tables if they do not exist"""
    metadata.create_all(engine)


class SQLPlayerLedger:
    """Player balance reads and writes against the characters table"""

    def __init__(self, engine: Engine):
        self.engine = engine

    async def get_balance(self, player_id: str) -> Optional[float]:
        """Return the player's balance, or None if the player does not exist"""
        with self.engine.connect() as conn:
            row = conn.execute(
                select(characters.c.money).where(characters.c.id == player_id)
            ).first()
        return None if row is None else float(row.money)

    async def set_balance(self, player_id: str, new_balance: float) -> None:
        with self.engine.begin() as conn:
            result = conn.execute(
                update(characters)
                .where(characters.c.id == player_id)
                .values(money=new_balance)
            )
        if result.rowcount == 0:
            raise LookupError(f"Character {player_id} not found")
        logger.debug(f"Balance for {player_id} set to {new_balance:.2f}")

    async def count_online_players(self) -> int:
        with self.engine.connect() as conn:
            count = conn.execute(
                select(func.count()).select_from(characters).where(characters.c.is_online.is_(True))
            ).scalar_one()
        return int(count)


class SQLEconomicEventStore:
    """Persistence for economic events"""

    def __init__(self, engine: Engine):
        self.engine = engine

    async def add(self, event: EconomicEvent) -> EconomicEvent:
        with self.engine.begin() as conn:
            conn.execute(
                insert(economic_events).values(
                    id=event.id,
                    event_type=event.event_type,
                    impact_type=event.impact_type.value,
                    severity=event.severity,
                    description=event.description,
                    duration=event.duration,
                    is_active=event.is_active,
                    created_at=event.created_at,
                    expires_at=event.expires_at,
                )
            )
        return event

    async def fetch_active(self, now: Optional[datetime] = None) -> List[EconomicEvent]:
        """Active events that have not yet expired"""
        now = now or utcnow()
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(economic_events)
                .where(economic_events.c.is_active.is_(True))
                .where(economic_events.c.expires_at > now)
            ).mappings().all()

        return [
            EconomicEvent(**{**dict(row), "impact_type": ImpactType(row["impact_type"])})
            for row in rows
        ]
