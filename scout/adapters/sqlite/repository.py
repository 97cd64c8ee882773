"""
SQLite Repository - Directory storage with FTS5 search and embedding records.

Features:
- Async operations via aiosqlite
- Profiles and projects with FTS5 indexes kept in sync by triggers
- Embedding vectors stored as float32 blobs
- Embedding audit log used for staleness detection
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import numpy as np

from scout.config import ErrorCode, StorageError
from scout.domains.search.models import (
    Availability,
    EmbeddingLog,
    EmbeddingRecord,
    EntityType,
    MediaItem,
    Profile,
    Project,
    SortOrder,
)

logger = logging.getLogger(__name__)

__all__ = ["SQLiteRepository"]

# SQLite caps bound parameters per statement
_MAX_PARAMS = 500


# Name orderings use Python's casefold so SQL and in-memory sorts agree
def _casefold(value: Any) -> Any:
    return value.casefold() if isinstance(value, str) else value


_PROFILE_ORDER = {
    SortOrder.RECENT: "p.created_at DESC, p.id ASC",
    SortOrder.NAME: "casefold(COALESCE(NULLIF(p.display_name, ''), p.handle)) ASC, p.id ASC",
    SortOrder.RANDOM: "random()",
}

_PROJECT_ORDER = {
    SortOrder.RECENT: "p.created_at DESC, p.id ASC",
    SortOrder.NAME: "casefold(p.name) ASC, p.id ASC",
    SortOrder.FEATURED: "p.featured DESC, p.created_at DESC, p.id ASC",
    SortOrder.RANDOM: "random()",
}

_PROJECT_SELECT = """
    SELECT p.*, o.handle AS owner_handle, o.display_name AS owner_display_name
    FROM projects p
    LEFT JOIN profiles o ON o.id = p.owner_id
"""

_SCHEMA = """
    -- Profiles table
    CREATE TABLE IF NOT EXISTS profiles (
        id TEXT PRIMARY KEY,
        handle TEXT NOT NULL UNIQUE,
        display_name TEXT NOT NULL DEFAULT '',
        headline TEXT NOT NULL DEFAULT '',
        bio TEXT NOT NULL DEFAULT '',
        skills TEXT NOT NULL DEFAULT '[]',
        interests TEXT NOT NULL DEFAULT '[]',
        location TEXT NOT NULL DEFAULT '',
        available_for_hire INTEGER NOT NULL DEFAULT 0,
        open_to_collab INTEGER NOT NULL DEFAULT 0,
        hiring INTEGER NOT NULL DEFAULT 0,
        active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    -- Projects table
    CREATE TABLE IF NOT EXISTS projects (
        id TEXT PRIMARY KEY,
        owner_id TEXT NOT NULL,
        name TEXT NOT NULL,
        slug TEXT NOT NULL,
        oneliner TEXT NOT NULL DEFAULT '',
        description TEXT NOT NULL DEFAULT '',
        featured INTEGER NOT NULL DEFAULT 0,
        url TEXT,
        media TEXT NOT NULL DEFAULT '[]',
        active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        UNIQUE (owner_id, slug),
        FOREIGN KEY (owner_id) REFERENCES profiles(id)
    );

    -- FTS5 virtual tables for keyword prefiltering
    CREATE VIRTUAL TABLE IF NOT EXISTS profiles_fts USING fts5(
        handle,
        display_name,
        headline,
        bio,
        skills,
        interests,
        location,
        content='profiles',
        content_rowid='rowid',
        tokenize='porter unicode61'
    );

    CREATE VIRTUAL TABLE IF NOT EXISTS projects_fts USING fts5(
        name,
        slug,
        oneliner,
        description,
        content='projects',
        content_rowid='rowid',
        tokenize='porter unicode61'
    );

    -- Triggers to keep FTS in sync
    CREATE TRIGGER IF NOT EXISTS profiles_ai AFTER INSERT ON profiles BEGIN
        INSERT INTO profiles_fts(rowid, handle, display_name, headline, bio, skills, interests, location)
        VALUES (new.rowid, new.handle, new.display_name, new.headline, new.bio, new.skills, new.interests, new.location);
    END;

    CREATE TRIGGER IF NOT EXISTS profiles_ad AFTER DELETE ON profiles BEGIN
        INSERT INTO profiles_fts(profiles_fts, rowid, handle, display_name, headline, bio, skills, interests, location)
        VALUES ('delete', old.rowid, old.handle, old.display_name, old.headline, old.bio, old.skills, old.interests, old.location);
    END;

    CREATE TRIGGER IF NOT EXISTS profiles_au AFTER UPDATE ON profiles BEGIN
        INSERT INTO profiles_fts(profiles_fts, rowid, handle, display_name, headline, bio, skills, interests, location)
        VALUES ('delete', old.rowid, old.handle, old.display_name, old.headline, old.bio, old.skills, old.interests, old.location);
        INSERT INTO profiles_fts(rowid, handle, display_name, headline, bio, skills, interests, location)
        VALUES (new.rowid, new.handle, new.display_name, new.headline, new.bio, new.skills, new.interests, new.location);
    END;

    CREATE TRIGGER IF NOT EXISTS projects_ai AFTER INSERT ON projects BEGIN
        INSERT INTO projects_fts(rowid, name, slug, oneliner, description)
        VALUES (new.rowid, new.name, new.slug, new.oneliner, new.description);
    END;

    CREATE TRIGGER IF NOT EXISTS projects_ad AFTER DELETE ON projects BEGIN
        INSERT INTO projects_fts(projects_fts, rowid, name, slug, oneliner, description)
        VALUES ('delete', old.rowid, old.name, old.slug, old.oneliner, old.description);
    END;

    CREATE TRIGGER IF NOT EXISTS projects_au AFTER UPDATE ON projects BEGIN
        INSERT INTO projects_fts(projects_fts, rowid, name, slug, oneliner, description)
        VALUES ('delete', old.rowid, old.name, old.slug, old.oneliner, old.description);
        INSERT INTO projects_fts(rowid, name, slug, oneliner, description)
        VALUES (new.rowid, new.name, new.slug, new.oneliner, new.description);
    END;

    -- Embeddings table (one vector per entity per model)
    CREATE TABLE IF NOT EXISTS embeddings (
        entity_type TEXT NOT NULL,
        entity_id TEXT NOT NULL,
        model_id TEXT NOT NULL,
        dimension INTEGER NOT NULL,
        vector BLOB NOT NULL,
        content_hash TEXT,
        created_at TEXT NOT NULL,
        PRIMARY KEY (entity_type, entity_id, model_id)
    );

    -- Embedding audit log
    CREATE TABLE IF NOT EXISTS embedding_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        entity_id TEXT NOT NULL,
        entity_type TEXT NOT NULL,
        action TEXT NOT NULL,
        content_hash TEXT,
        error TEXT,
        timestamp TEXT NOT NULL
    );

    -- Indexes
    CREATE INDEX IF NOT EXISTS idx_profiles_active_created ON profiles(active, created_at);
    CREATE INDEX IF NOT EXISTS idx_projects_active_created ON projects(active, created_at);
    CREATE INDEX IF NOT EXISTS idx_projects_owner ON projects(owner_id);
    CREATE INDEX IF NOT EXISTS idx_embeddings_model ON embeddings(model_id, entity_type);
    CREATE INDEX IF NOT EXISTS idx_embedding_logs_entity ON embedding_logs(entity_type, timestamp);
"""


def _ts(value: datetime) -> str:
    """Serialize to a sortable UTC ISO-8601 string."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _now() -> str:
    return _ts(datetime.now(timezone.utc))


def _chunks(values: Sequence[str], size: int = _MAX_PARAMS) -> list[list[str]]:
    return [list(values[i : i + size]) for i in range(0, len(values), size)]


def _fts_query(terms: Sequence[str]) -> str:
    """OR of quoted phrases; terms without any word character are dropped."""
    phrases = []
    for term in terms:
        if any(ch.isalnum() for ch in term):
            phrases.append('"' + term.replace('"', '""') + '"')
    return " OR ".join(phrases)


class SQLiteRepository:
    """
    SQLite repository for directory entities and embeddings.

    Example:
        >>> repo = SQLiteRepository("data/scout.db")
        >>> await repo.initialize()
        >>> await repo.upsert_profile(Profile(id="p1", handle="ada", skills=["Python"]))
        >>> candidates = await repo.keyword_candidates("profile", ["python"], limit=20)
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Initialize repository.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection: aiosqlite.Connection | None = None

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._connection is None:
            try:
                self._connection = await aiosqlite.connect(str(self.db_path))
            except aiosqlite.Error as e:
                raise StorageError(f"Cannot open database: {self.db_path}") from e
            self._connection.row_factory = aiosqlite.Row
            await self._connection.create_function(
                "casefold", 1, _casefold, deterministic=True
            )
        return self._connection

    async def initialize(self) -> None:
        """Initialize database schema."""
        conn = await self._get_connection()
        await conn.executescript(_SCHEMA)
        await conn.commit()
        logger.info("Database initialized: %s", self.db_path)

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def _fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[aiosqlite.Row]:
        conn = await self._get_connection()
        try:
            cursor = await conn.execute(sql, tuple(params))
            return list(await cursor.fetchall())
        except aiosqlite.Error as e:
            raise StorageError(
                f"Query failed: {e}", code=ErrorCode.STORAGE_READ_FAILED
            ) from e

    async def _write(self, sql: str, params: Sequence[Any] = ()) -> int:
        conn = await self._get_connection()
        try:
            cursor = await conn.execute(sql, tuple(params))
            await conn.commit()
            return cursor.rowcount
        except aiosqlite.Error as e:
            await conn.rollback()
            raise StorageError(
                f"Write failed: {e}", code=ErrorCode.STORAGE_WRITE_FAILED
            ) from e

    # --- Entity writes ---

    async def upsert_profile(self, profile: Profile) -> None:
        """Insert or update a profile."""
        await self._write(
            """
            INSERT INTO profiles
            (id, handle, display_name, headline, bio, skills, interests, location,
             available_for_hire, open_to_collab, hiring, active, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                handle = excluded.handle,
                display_name = excluded.display_name,
                headline = excluded.headline,
                bio = excluded.bio,
                skills = excluded.skills,
                interests = excluded.interests,
                location = excluded.location,
                available_for_hire = excluded.available_for_hire,
                open_to_collab = excluded.open_to_collab,
                hiring = excluded.hiring,
                active = excluded.active,
                updated_at = excluded.updated_at
            """,
            (
                profile.id,
                profile.handle,
                profile.display_name,
                profile.headline,
                profile.bio,
                json.dumps(profile.skills),
                json.dumps(profile.interests),
                profile.location,
                int(profile.availability.hire),
                int(profile.availability.collab),
                int(profile.availability.hiring),
                int(profile.active),
                _ts(profile.created_at),
                _ts(profile.updated_at),
            ),
        )

    async def upsert_project(self, project: Project) -> None:
        """Insert or update a project."""
        await self._write(
            """
            INSERT INTO projects
            (id, owner_id, name, slug, oneliner, description, featured, url, media,
             active, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                owner_id = excluded.owner_id,
                name = excluded.name,
                slug = excluded.slug,
                oneliner = excluded.oneliner,
                description = excluded.description,
                featured = excluded.featured,
                url = excluded.url,
                media = excluded.media,
                active = excluded.active,
                updated_at = excluded.updated_at
            """,
            (
                project.id,
                project.owner_id,
                project.name,
                project.slug,
                project.oneliner,
                project.description,
                int(project.featured),
                project.url,
                json.dumps([m.model_dump() for m in project.media]),
                int(project.active),
                _ts(project.created_at),
                _ts(project.updated_at),
            ),
        )

    async def set_active(self, entity_type: EntityType, entity_id: str, active: bool) -> bool:
        """Activate or deactivate an entity. Returns False when it does not exist."""
        table = self._table(entity_type)
        rows = await self._write(
            f"UPDATE {table} SET active = ?, updated_at = ? WHERE id = ?",
            (int(active), _now(), entity_id),
        )
        return rows > 0

    # --- Entity reads ---

    @staticmethod
    def _table(entity_type: str) -> str:
        if entity_type == "profile":
            return "profiles"
        if entity_type == "project":
            return "projects"
        raise ValueError(f"Unknown entity type: {entity_type}")

    def _select(self, entity_type: str) -> str:
        if entity_type == "project":
            return _PROJECT_SELECT
        return "SELECT p.* FROM profiles p"

    def _to_entity(self, entity_type: str, row: aiosqlite.Row) -> Profile | Project:
        if entity_type == "project":
            return self._row_to_project(row)
        return self._row_to_profile(row)

    @staticmethod
    def _row_to_profile(row: aiosqlite.Row) -> Profile:
        return Profile(
            id=row["id"],
            handle=row["handle"],
            display_name=row["display_name"],
            headline=row["headline"],
            bio=row["bio"],
            skills=json.loads(row["skills"] or "[]"),
            interests=json.loads(row["interests"] or "[]"),
            location=row["location"],
            availability=Availability(
                hire=bool(row["available_for_hire"]),
                collab=bool(row["open_to_collab"]),
                hiring=bool(row["hiring"]),
            ),
            active=bool(row["active"]),
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    @staticmethod
    def _row_to_project(row: aiosqlite.Row) -> Project:
        return Project(
            id=row["id"],
            owner_id=row["owner_id"],
            name=row["name"],
            slug=row["slug"],
            oneliner=row["oneliner"],
            description=row["description"],
            featured=bool(row["featured"]),
            url=row["url"],
            media=[MediaItem(**m) for m in json.loads(row["media"] or "[]")],
            active=bool(row["active"]),
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
            owner_handle=row["owner_handle"],
            owner_display_name=row["owner_display_name"],
        )

    async def get_entity(
        self,
        entity_type: EntityType,
        entity_id: str,
        include_inactive: bool = False,
    ) -> Profile | Project | None:
        """Get one entity by id."""
        sql = f"{self._select(entity_type)} WHERE p.id = ?"
        if not include_inactive:
            sql += " AND p.active = 1"
        rows = await self._fetchall(sql, (entity_id,))
        return self._to_entity(entity_type, rows[0]) if rows else None

    async def count_active(self, entity_type: EntityType) -> int:
        """Count active entities of a type."""
        table = self._table(entity_type)
        rows = await self._fetchall(f"SELECT COUNT(*) FROM {table} WHERE active = 1")
        return int(rows[0][0])

    async def browse(
        self,
        entity_type: EntityType,
        sort: SortOrder,
        limit: int,
        offset: int = 0,
    ) -> list[Profile | Project]:
        """
        List active entities.

        Args:
            entity_type: "profile" or "project"
            sort: Ordering; relevance and unsupported orders fall back to recent
            limit: Page size
            offset: Rows to skip

        Returns:
            Entities in the requested order
        """
        orders = _PROJECT_ORDER if entity_type == "project" else _PROFILE_ORDER
        order_by = orders.get(sort, orders[SortOrder.RECENT])
        rows = await self._fetchall(
            f"{self._select(entity_type)} WHERE p.active = 1 ORDER BY {order_by} LIMIT ? OFFSET ?",
            (limit, offset),
        )
        return [self._to_entity(entity_type, row) for row in rows]

    async def fetch_entities(
        self,
        entity_type: EntityType,
        ids: Sequence[str],
    ) -> dict[str, Profile | Project]:
        """Hydrate active entities by id. Missing or inactive ids are absent."""
        entities: dict[str, Profile | Project] = {}
        for chunk in _chunks(list(dict.fromkeys(ids))):
            placeholders = ",".join("?" * len(chunk))
            rows = await self._fetchall(
                f"{self._select(entity_type)} WHERE p.active = 1 AND p.id IN ({placeholders})",
                chunk,
            )
            for row in rows:
                entity = self._to_entity(entity_type, row)
                entities[entity.id] = entity
        return entities

    async def active_updated_at(
        self,
        entity_type: EntityType,
        ids: Sequence[str],
    ) -> dict[str, datetime]:
        """Map active entity ids to their last update time."""
        table = self._table(entity_type)
        result: dict[str, datetime] = {}
        for chunk in _chunks(list(dict.fromkeys(ids))):
            placeholders = ",".join("?" * len(chunk))
            rows = await self._fetchall(
                f"SELECT id, updated_at FROM {table} WHERE active = 1 AND id IN ({placeholders})",
                chunk,
            )
            for row in rows:
                result[row["id"]] = _parse_ts(row["updated_at"])
        return result

    async def keyword_candidates(
        self,
        entity_type: EntityType,
        terms: Sequence[str],
        limit: int,
    ) -> list[Profile | Project]:
        """
        Full-text prefilter using FTS5.

        Args:
            entity_type: "profile" or "project"
            terms: Terms to OR together (each matched as a phrase)
            limit: Maximum candidates

        Returns:
            Active entities matching any term, best BM25 first
        """
        match = _fts_query(terms)
        if not match:
            return []

        fts = f"{self._table(entity_type)}_fts"
        rows = await self._fetchall(
            f"""
            {self._select(entity_type)}
            JOIN {fts} ON {fts}.rowid = p.rowid
            WHERE {fts} MATCH ? AND p.active = 1
            ORDER BY bm25({fts}), p.id
            LIMIT ?
            """,
            (match, limit),
        )
        return [self._to_entity(entity_type, row) for row in rows]

    async def iter_entities(
        self,
        entity_type: EntityType,
        batch_size: int = 100,
    ) -> AsyncIterator[list[Profile | Project]]:
        """Yield all active entities in id order, in batches."""
        last_id = ""
        while True:
            rows = await self._fetchall(
                f"{self._select(entity_type)} WHERE p.active = 1 AND p.id > ? "
                "ORDER BY p.id LIMIT ?",
                (last_id, batch_size),
            )
            if not rows:
                return
            batch = [self._to_entity(entity_type, row) for row in rows]
            yield batch
            last_id = batch[-1].id

    async def owner_projects(self, owner_id: str, limit: int = 3) -> list[Project]:
        """Active projects of one owner, featured first, then newest."""
        rows = await self._fetchall(
            f"""
            {_PROJECT_SELECT}
            WHERE p.owner_id = ? AND p.active = 1
            ORDER BY {_PROJECT_ORDER[SortOrder.FEATURED]}
            LIMIT ?
            """,
            (owner_id, limit),
        )
        return [self._row_to_project(row) for row in rows]

    # --- Embeddings ---

    async def upsert_embedding(self, record: EmbeddingRecord) -> None:
        """Store an embedding. All-zero vectors are rejected."""
        vector = np.asarray(record.vector, dtype=np.float32)
        if not np.any(vector) or not np.isfinite(vector).all():
            raise StorageError(
                "Refusing to store an invalid embedding",
                {"entity_type": record.entity_type, "entity_id": record.entity_id},
                code=ErrorCode.STORAGE_WRITE_FAILED,
            )
        await self._write(
            """
            INSERT INTO embeddings
            (entity_type, entity_id, model_id, dimension, vector, content_hash, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(entity_type, entity_id, model_id) DO UPDATE SET
                dimension = excluded.dimension,
                vector = excluded.vector,
                content_hash = excluded.content_hash,
                created_at = excluded.created_at
            """,
            (
                record.entity_type,
                record.entity_id,
                record.model_id,
                int(vector.shape[0]),
                vector.tobytes(),
                record.content_hash,
                _ts(record.created_at),
            ),
        )

    async def get_embedding(
        self,
        entity_type: EntityType,
        entity_id: str,
        model_id: str,
    ) -> EmbeddingRecord | None:
        """Fetch one stored embedding; corrupt or all-zero rows read as missing."""
        rows = await self._fetchall(
            """
            SELECT * FROM embeddings
            WHERE entity_type = ? AND entity_id = ? AND model_id = ?
            """,
            (entity_type, entity_id, model_id),
        )
        if not rows:
            return None
        row = rows[0]
        vector = np.frombuffer(row["vector"], dtype=np.float32)
        if not np.any(vector):
            logger.warning("Ignoring all-zero embedding: %s/%s", entity_type, entity_id)
            return None
        return EmbeddingRecord(
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            model_id=row["model_id"],
            vector=vector.tolist(),
            content_hash=row["content_hash"],
            created_at=_parse_ts(row["created_at"]),
        )

    async def delete_embedding(
        self,
        entity_type: EntityType,
        entity_id: str,
        model_id: str | None = None,
    ) -> int:
        """Delete embeddings for an entity (one model or all)."""
        if model_id is None:
            return await self._write(
                "DELETE FROM embeddings WHERE entity_type = ? AND entity_id = ?",
                (entity_type, entity_id),
            )
        return await self._write(
            "DELETE FROM embeddings WHERE entity_type = ? AND entity_id = ? AND model_id = ?",
            (entity_type, entity_id, model_id),
        )

    async def load_embedding_matrix(
        self,
        entity_type: EntityType,
        model_id: str,
    ) -> tuple[list[str], np.ndarray]:
        """
        Load all stored vectors for a type and model.

        Rows that are all-zero or whose length differs from the first row are skipped.

        Returns:
            (entity ids, float32 matrix of shape (n, dimension))
        """
        rows = await self._fetchall(
            """
            SELECT entity_id, dimension, vector FROM embeddings
            WHERE entity_type = ? AND model_id = ?
            ORDER BY entity_id
            """,
            (entity_type, model_id),
        )
        ids: list[str] = []
        vectors: list[np.ndarray] = []
        dimension: int | None = None
        for row in rows:
            vector = np.frombuffer(row["vector"], dtype=np.float32)
            if dimension is None:
                dimension = vector.shape[0]
            if vector.shape[0] != dimension:
                logger.warning(
                    "Skipping embedding with dimension %d (expected %d): %s/%s",
                    vector.shape[0],
                    dimension,
                    entity_type,
                    row["entity_id"],
                )
                continue
            if not np.any(vector):
                logger.warning("Skipping all-zero embedding: %s/%s", entity_type, row["entity_id"])
                continue
            ids.append(row["entity_id"])
            vectors.append(vector)

        if not vectors:
            return [], np.zeros((0, dimension or 0), dtype=np.float32)
        return ids, np.vstack(vectors)

    async def embedding_counts(self, model_id: str) -> dict[str, int]:
        """Count stored embeddings per entity type for a model."""
        rows = await self._fetchall(
            """
            SELECT entity_type, COUNT(*) AS n FROM embeddings
            WHERE model_id = ?
            GROUP BY entity_type
            """,
            (model_id,),
        )
        return {row["entity_type"]: int(row["n"]) for row in rows}

    async def orphaned_embeddings(self, entity_type: EntityType, model_id: str) -> list[str]:
        """Ids with a stored embedding but no active entity."""
        table = self._table(entity_type)
        rows = await self._fetchall(
            f"""
            SELECT e.entity_id FROM embeddings e
            LEFT JOIN {table} t ON t.id = e.entity_id AND t.active = 1
            WHERE e.entity_type = ? AND e.model_id = ? AND t.id IS NULL
            ORDER BY e.entity_id
            """,
            (entity_type, model_id),
        )
        return [row["entity_id"] for row in rows]

    # --- Embedding log ---

    async def append_embedding_log(self, entry: EmbeddingLog) -> None:
        """Append an audit entry."""
        await self._write(
            """
            INSERT INTO embedding_logs
            (entity_id, entity_type, action, content_hash, error, timestamp)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                entry.entity_id,
                entry.entity_type,
                entry.action.value,
                entry.content_hash,
                entry.error,
                _ts(entry.timestamp),
            ),
        )

    async def recent_embedding_logs(self, limit: int = 50) -> list[EmbeddingLog]:
        """Latest audit entries, newest first."""
        rows = await self._fetchall(
            "SELECT * FROM embedding_logs ORDER BY id DESC LIMIT ?",
            (limit,),
        )
        return [
            EmbeddingLog(
                entity_id=row["entity_id"],
                entity_type=row["entity_type"],
                action=row["action"],
                content_hash=row["content_hash"],
                error=row["error"],
                timestamp=_parse_ts(row["timestamp"]),
            )
            for row in rows
        ]

    async def embedding_watermark(self, entity_type: EntityType) -> str:
        """
        Opaque token that changes whenever embeddings of a type change.

        Combines the audit log (entry count, latest timestamp) with the
        embeddings table (row count, latest write) so writes that bypass
        the log are still noticed.
        """
        log_rows = await self._fetchall(
            "SELECT COUNT(*), MAX(timestamp) FROM embedding_logs WHERE entity_type = ?",
            (entity_type,),
        )
        emb_rows = await self._fetchall(
            "SELECT COUNT(*), MAX(created_at) FROM embeddings WHERE entity_type = ?",
            (entity_type,),
        )
        log_count, log_latest = log_rows[0][0], log_rows[0][1]
        emb_count, emb_latest = emb_rows[0][0], emb_rows[0][1]
        return f"{log_count}:{log_latest or '-'}:{emb_count}:{emb_latest or '-'}"
