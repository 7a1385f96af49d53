"""SQLite database utilities for persistent storage.

Manages the SQLite database connection and schema for memes, user
interactions, follow edges and delivered notifications.
"""

import json
import sqlite3
from pathlib import Path
from typing import Any

from memerank.utils.logger import get_logger

logger = get_logger(__name__)

INTERACTION_TYPES = ("like", "dislike", "collection", "share", "comment", "view")

COUNTER_COLUMNS = {
    "like": "like_count",
    "dislike": "dislike_count",
    "collection": "collection_count",
    "share": "share_count",
    "comment": "comment_count",
    "view": "views",
}

ORDERINGS = {
    "hot_score": "hot_score DESC, id ASC",
    "created_at": "created_at DESC, id ASC",
    "modified_at": "modified_at DESC, id ASC",
}


def get_connection(db_path: str = "data/app.db") -> sqlite3.Connection:
    """Create or open a SQLite database connection.

    Args:
        db_path: Path to the SQLite database file.

    Returns:
        An open SQLite connection with row factory enabled.
    """
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str = "data/app.db") -> None:
    """Initialize the database schema.

    Creates the memes, interactions, follows and notifications tables if
    they do not already exist.

    Args:
        db_path: Path to the SQLite database file.
    """
    conn = get_connection(db_path)
    try:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS memes (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                author_id TEXT,
                tags TEXT NOT NULL DEFAULT '[]',
                status TEXT NOT NULL DEFAULT 'public',
                like_count INTEGER NOT NULL DEFAULT 0,
                dislike_count INTEGER NOT NULL DEFAULT 0,
                views INTEGER NOT NULL DEFAULT 0,
                comment_count INTEGER NOT NULL DEFAULT 0,
                collection_count INTEGER NOT NULL DEFAULT 0,
                share_count INTEGER NOT NULL DEFAULT 0,
                hot_score REAL NOT NULL DEFAULT 0,
                created_at REAL NOT NULL,
                modified_at REAL
            );

            CREATE INDEX IF NOT EXISTS idx_memes_hot
                ON memes(status, hot_score);

            CREATE TABLE IF NOT EXISTS interactions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                meme_id TEXT NOT NULL,
                type TEXT NOT NULL,
                created_at REAL NOT NULL,
                UNIQUE(user_id, meme_id, type)
            );

            CREATE INDEX IF NOT EXISTS idx_interactions_user
                ON interactions(user_id);

            CREATE TABLE IF NOT EXISTS follows (
                follower_id TEXT NOT NULL,
                followed_id TEXT NOT NULL,
                created_at REAL NOT NULL,
                UNIQUE(follower_id, followed_id)
            );

            CREATE TABLE IF NOT EXISTS notifications (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                job_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                verb TEXT NOT NULL,
                actor_id TEXT,
                object_id TEXT,
                title TEXT,
                content TEXT,
                created_at REAL NOT NULL,
                UNIQUE(job_id, user_id)
            );
            """
        )
        conn.commit()
        logger.info("Database schema initialized at %s", db_path)
    finally:
        conn.close()


def _meme_from_row(row: sqlite3.Row) -> dict[str, Any]:
    meme = dict(row)
    meme["tags"] = json.loads(meme["tags"])
    return meme


def insert_meme(db_path: str, meme: dict[str, Any]) -> None:
    """Insert or replace a meme.

    Args:
        db_path: Path to the SQLite database file.
        meme: Meme fields; ``id``, ``title`` and ``created_at`` are required.
    """
    row = {
        "author_id": None,
        "tags": [],
        "status": "public",
        "like_count": 0,
        "dislike_count": 0,
        "views": 0,
        "comment_count": 0,
        "collection_count": 0,
        "share_count": 0,
        "hot_score": 0.0,
        "modified_at": None,
        **meme,
    }
    # tags are matched case-insensitively
    row["tags"] = json.dumps([str(t).strip().lower() for t in row["tags"]])
    conn = get_connection(db_path)
    try:
        conn.execute(
            """
            INSERT OR REPLACE INTO memes (
                id, title, author_id, tags, status, like_count, dislike_count,
                views, comment_count, collection_count, share_count, hot_score,
                created_at, modified_at
            ) VALUES (
                :id, :title, :author_id, :tags, :status, :like_count,
                :dislike_count, :views, :comment_count, :collection_count,
                :share_count, :hot_score, :created_at, :modified_at
            )
            """,
            row,
        )
        conn.commit()
    finally:
        conn.close()


def get_meme(db_path: str, meme_id: str) -> dict[str, Any] | None:
    """Fetch a single meme by id, or None when absent."""
    conn = get_connection(db_path)
    try:
        row = conn.execute("SELECT * FROM memes WHERE id = ?", (meme_id,)).fetchone()
        return _meme_from_row(row) if row else None
    finally:
        conn.close()


def list_memes(
    db_path: str,
    created_since: float | None = None,
    modified_since: float | None = None,
    tags: list[str] | None = None,
    order_by: str = "hot_score",
    limit: int | None = None,
) -> list[dict[str, Any]]:
    """List public memes matching the given window and tag filters.

    Args:
        db_path: Path to the SQLite database file.
        created_since: Only memes created at or after this unix timestamp.
        modified_since: Only memes modified at or after this unix timestamp.
        tags: Keep memes carrying at least one of these tags.
        order_by: One of "hot_score", "created_at" or "modified_at".
        limit: Maximum number of memes to return.

    Returns:
        Meme dicts with ``tags`` decoded to a list.
    """
    clauses = ["status = 'public'"]
    params: list[Any] = []
    if created_since is not None:
        clauses.append("created_at >= ?")
        params.append(created_since)
    if modified_since is not None:
        clauses.append("modified_at IS NOT NULL AND modified_at >= ?")
        params.append(modified_since)

    query = (
        f"SELECT * FROM memes WHERE {' AND '.join(clauses)} "
        f"ORDER BY {ORDERINGS[order_by]}"
    )
    conn = get_connection(db_path)
    try:
        memes = [_meme_from_row(row) for row in conn.execute(query, params)]
    finally:
        conn.close()

    if tags:
        wanted = set(tags)
        memes = [m for m in memes if wanted.intersection(m["tags"])]
    return memes[:limit] if limit is not None else memes


def record_interaction(
    db_path: str, user_id: str, meme_id: str, interaction_type: str, timestamp: float
) -> bool:
    """Record a user interaction and bump the meme's counter.

    Repeated interactions of the same type refresh the timestamp without
    touching the counter.

    Args:
        db_path: Path to the SQLite database file.
        user_id: The acting user.
        meme_id: The meme interacted with.
        interaction_type: One of INTERACTION_TYPES.
        timestamp: Unix timestamp of the interaction.

    Returns:
        True if this was a new interaction.
    """
    column = COUNTER_COLUMNS[interaction_type]
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            """
            INSERT INTO interactions (user_id, meme_id, type, created_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id, meme_id, type)
            DO NOTHING
            """,
            (user_id, meme_id, interaction_type, timestamp),
        )
        created = cursor.rowcount == 1
        if created:
            conn.execute(
                f"UPDATE memes SET {column} = {column} + 1 WHERE id = ?", (meme_id,)
            )
        else:
            conn.execute(
                """
                UPDATE interactions SET created_at = ?
                WHERE user_id = ? AND meme_id = ? AND type = ?
                """,
                (timestamp, user_id, meme_id, interaction_type),
            )
        conn.commit()
        return created
    finally:
        conn.close()


def update_hot_score(db_path: str, meme_id: str, hot_score: float) -> None:
    """Persist a recomputed hot score."""
    conn = get_connection(db_path)
    try:
        conn.execute("UPDATE memes SET hot_score = ? WHERE id = ?", (hot_score, meme_id))
        conn.commit()
    finally:
        conn.close()


def get_user_interactions(db_path: str, user_id: str) -> list[dict[str, Any]]:
    """Retrieve a user's interactions joined with the meme tags.

    Returns:
        Dicts with meme_id, type, created_at and tags.
    """
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            """
            SELECT i.meme_id, i.type, i.created_at, m.tags
            FROM interactions i JOIN memes m ON m.id = i.meme_id
            WHERE i.user_id = ?
            """,
            (user_id,),
        )
        return [
            {
                "meme_id": row["meme_id"],
                "type": row["type"],
                "created_at": row["created_at"],
                "tags": json.loads(row["tags"]),
            }
            for row in cursor.fetchall()
        ]
    finally:
        conn.close()


def get_all_interactions(db_path: str) -> list[tuple[str, str, str, float]]:
    """Retrieve every interaction as (user_id, meme_id, type, created_at)."""
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            "SELECT user_id, meme_id, type, created_at FROM interactions"
        )
        return [tuple(row) for row in cursor.fetchall()]
    finally:
        conn.close()


def insert_follow(db_path: str, follower_id: str, followed_id: str, timestamp: float) -> bool:
    """Record a follow edge.

    Returns:
        False if the edge already existed.
    """
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            "INSERT OR IGNORE INTO follows (follower_id, followed_id, created_at) "
            "VALUES (?, ?, ?)",
            (follower_id, followed_id, timestamp),
        )
        conn.commit()
        return cursor.rowcount == 1
    finally:
        conn.close()


def get_followers(db_path: str, user_id: str) -> list[str]:
    """Return the ids of users following ``user_id``."""
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            "SELECT follower_id FROM follows WHERE followed_id = ? ORDER BY follower_id",
            (user_id,),
        )
        return [row["follower_id"] for row in cursor.fetchall()]
    finally:
        conn.close()


def get_all_follows(db_path: str) -> list[tuple[str, str]]:
    """Retrieve every follow edge as (follower_id, followed_id)."""
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            "SELECT follower_id, followed_id FROM follows ORDER BY follower_id, followed_id"
        )
        return [tuple(row) for row in cursor.fetchall()]
    finally:
        conn.close()


def insert_notification(
    db_path: str,
    job_id: str,
    user_id: str,
    verb: str,
    timestamp: float,
    actor_id: str | None = None,
    object_id: str | None = None,
    title: str | None = None,
    content: str | None = None,
) -> bool:
    """Insert a notification once per (job_id, user_id).

    Returns:
        True if a row was written, False if it already existed.
    """
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            """
            INSERT OR IGNORE INTO notifications
                (job_id, user_id, verb, actor_id, object_id, title, content, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (job_id, user_id, verb, actor_id, object_id, title, content, timestamp),
        )
        conn.commit()
        return cursor.rowcount == 1
    finally:
        conn.close()


def get_notifications(db_path: str, user_id: str) -> list[dict[str, Any]]:
    """Return a user's notifications, oldest first."""
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            "SELECT * FROM notifications WHERE user_id = ? ORDER BY id", (user_id,)
        )
        return [dict(row) for row in cursor.fetchall()]
    finally:
        conn.close()
