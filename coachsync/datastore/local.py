"""
Local embedded store backed by SQLite (SQLAlchemy async + aiosqlite).

All entity types live in a single ``documents`` table keyed by (kind, key),
so the store stays schema-free for the JSON documents the app produces.
Writes are upserts, which makes repeated migrations idempotent.
"""
import logging
import re
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from coachsync.database import Base, create_engine_for, create_session_factory
from coachsync.datastore.base import DataStore, Document
from coachsync.exceptions import DataStoreError
from coachsync.models import StoredDocument
from coachsync.utils.timestamps import utcnow

logger = logging.getLogger(__name__)

SINGLETON_KEY = "singleton"

KIND_PLAYER = "player"
KIND_TEAM = "team"
KIND_ROSTER = "team_roster"
KIND_SEASON = "season"
KIND_TOURNAMENT = "tournament"
KIND_PERSONNEL = "personnel"
KIND_GAME = "game"
KIND_ADJUSTMENT = "player_adjustment"
KIND_WARMUP_PLAN = "warmup_plan"
KIND_SETTINGS = "settings"


def migrate_tournament_level(tournament: Document) -> Document:
    """Convert a legacy single ``level`` into a one-element ``series`` list."""
    if tournament.get("series"):
        return tournament
    level = tournament.get("level")
    if not level:
        return tournament
    slug = re.sub(r"\s+", "-", str(level).lower())
    return {
        **tournament,
        "series": [{"id": f"series_{tournament['id']}_{slug}", "level": level}],
    }


class LocalDataStore(DataStore):
    backend_name = "local"

    def __init__(self, database_url: str, engine: AsyncEngine | None = None):
        self.database_url = database_url
        self._engine = engine
        self._owns_engine = engine is None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    async def initialize(self) -> None:
        try:
            if self._engine is None:
                self._engine = create_engine_for(self.database_url)
            self._session_factory = create_session_factory(self._engine)
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            logger.error(f"Failed to open local store at {self.database_url}: {e}")
            raise DataStoreError(f"Could not open local store: {e}") from e
        logger.debug(f"Local store initialized at {self.database_url}")

    async def close(self) -> None:
        self._session_factory = None
        if self._engine is not None and self._owns_engine:
            engine, self._engine = self._engine, None
            try:
                await engine.dispose()
            except SQLAlchemyError as e:
                raise DataStoreError(f"Failed to close local store: {e}") from e

    def _session(self) -> AsyncSession:
        if self._session_factory is None:
            raise DataStoreError("Local store is not initialized")
        return self._session_factory()

    # ==================== Generic document helpers ====================

    async def _rows(self, kind: str, owner_id: str | None = None) -> list[StoredDocument]:
        stmt = select(StoredDocument).where(StoredDocument.kind == kind)
        if owner_id is not None:
            stmt = stmt.where(StoredDocument.owner_id == owner_id)
        stmt = stmt.order_by(StoredDocument.key)
        try:
            async with self._session() as db:
                result = await db.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise DataStoreError(f"Failed to read {kind} documents: {e}") from e

    async def _list(self, kind: str, owner_id: str | None = None) -> list[Document]:
        return [dict(row.payload) for row in await self._rows(kind, owner_id)]

    async def _get(self, kind: str, key: str) -> Document | None:
        try:
            async with self._session() as db:
                result = await db.execute(
                    select(StoredDocument).where(
                        StoredDocument.kind == kind, StoredDocument.key == key
                    )
                )
                row = result.scalar_one_or_none()
                return dict(row.payload) if row else None
        except SQLAlchemyError as e:
            raise DataStoreError(f"Failed to read {kind} {key}: {e}") from e

    async def _upsert(self, kind: str, key: Any, payload: Any, owner_id: str | None = None) -> None:
        if not key:
            raise DataStoreError(f"Cannot store {kind} without an id")
        stmt = insert(StoredDocument).values(
            kind=kind,
            key=str(key),
            owner_id=owner_id,
            payload=payload,
            updated_at=utcnow(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["kind", "key"],
            set_={
                "owner_id": stmt.excluded.owner_id,
                "payload": stmt.excluded.payload,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        try:
            async with self._session() as db:
                await db.execute(stmt)
                await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to store {kind} {key}: {e}")
            raise DataStoreError(f"Failed to store {kind}: {e}", entity_id=str(key)) from e

    # ==================== Entities ====================

    async def get_players(self) -> list[Document]:
        return await self._list(KIND_PLAYER)

    async def upsert_player(self, player: Document) -> Document:
        await self._upsert(KIND_PLAYER, player.get("id"), player)
        return player

    async def get_teams(self, include_deleted: bool = False) -> list[Document]:
        teams = await self._list(KIND_TEAM)
        if include_deleted:
            return teams
        return [t for t in teams if not t.get("archived")]

    async def upsert_team(self, team: Document) -> Document:
        await self._upsert(KIND_TEAM, team.get("id"), team)
        return team

    async def get_team_roster(self, team_id: str) -> list[Document]:
        doc = await self._get(KIND_ROSTER, team_id)
        return list(doc.get("entries", [])) if doc else []

    async def get_all_team_rosters(self) -> dict[str, list[Document]]:
        return {
            row.key: list(row.payload["entries"])
            for row in await self._rows(KIND_ROSTER)
            if row.payload.get("entries")
        }

    async def set_team_roster(self, team_id: str, roster: list[Document]) -> None:
        if await self._get(KIND_TEAM, team_id) is None:
            raise DataStoreError(f"Team {team_id} does not exist", entity_id=team_id)
        await self._upsert(KIND_ROSTER, team_id, {"entries": roster}, owner_id=team_id)

    async def get_seasons(self, apply_migrations: bool = False) -> list[Document]:
        return await self._list(KIND_SEASON)

    async def upsert_season(self, season: Document) -> Document:
        await self._upsert(KIND_SEASON, season.get("id"), season)
        return season

    async def get_tournaments(self, apply_migrations: bool = False) -> list[Document]:
        tournaments = await self._list(KIND_TOURNAMENT)
        if apply_migrations:
            tournaments = [migrate_tournament_level(t) for t in tournaments]
        return tournaments

    async def upsert_tournament(self, tournament: Document) -> Document:
        await self._upsert(KIND_TOURNAMENT, tournament.get("id"), tournament)
        return tournament

    async def get_all_personnel(self) -> list[Document]:
        return await self._list(KIND_PERSONNEL)

    async def upsert_personnel_member(self, member: Document) -> Document:
        await self._upsert(KIND_PERSONNEL, member.get("id"), member)
        return member

    async def get_games(self) -> dict[str, Document]:
        return {row.key: dict(row.payload) for row in await self._rows(KIND_GAME)}

    async def save_game(self, game_id: str, game: Document) -> Document:
        await self._upsert(KIND_GAME, game_id, game)
        return game

    async def get_player_adjustments(self, player_id: str) -> list[Document]:
        return await self._list(KIND_ADJUSTMENT, owner_id=player_id)

    async def get_all_player_adjustments(self) -> dict[str, list[Document]]:
        grouped: dict[str, list[Document]] = {}
        for adjustment in await self._list(KIND_ADJUSTMENT):
            grouped.setdefault(adjustment.get("player_id"), []).append(adjustment)
        return grouped

    async def upsert_player_adjustment(self, adjustment: Document) -> Document:
        await self._upsert(
            KIND_ADJUSTMENT,
            adjustment.get("id"),
            adjustment,
            owner_id=adjustment.get("player_id"),
        )
        return adjustment

    async def get_warmup_plan(self) -> Document | None:
        return await self._get(KIND_WARMUP_PLAN, SINGLETON_KEY)

    async def save_warmup_plan(self, plan: Document) -> None:
        await self._upsert(KIND_WARMUP_PLAN, SINGLETON_KEY, plan)

    async def get_settings(self) -> Document | None:
        return await self._get(KIND_SETTINGS, SINGLETON_KEY)

    async def save_settings(self, settings: Document) -> None:
        await self._upsert(KIND_SETTINGS, SINGLETON_KEY, settings)

    async def clear_all_user_data(self) -> None:
        try:
            async with self._session() as db:
                await db.execute(delete(StoredDocument))
                await db.commit()
        except SQLAlchemyError as e:
            raise DataStoreError(f"Failed to clear local data: {e}") from e
        logger.info("Cleared all local user data")
