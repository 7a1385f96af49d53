"""Tests for SQLite database utilities."""

from pathlib import Path

from memerank.utils.database import (
    get_all_follows,
    get_all_interactions,
    get_connection,
    get_followers,
    get_meme,
    get_notifications,
    get_user_interactions,
    init_db,
    insert_follow,
    insert_meme,
    insert_notification,
    list_memes,
    record_interaction,
    update_hot_score,
)
from tests.conftest import DAY, NOW


class TestSchema:
    """Tests for database connection and schema."""

    def test_init_creates_tables(self, db_path: str) -> None:
        conn = get_connection(db_path)
        cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        tables = {row["name"] for row in cursor.fetchall()}
        conn.close()
        assert {"memes", "interactions", "follows", "notifications"} <= tables

    def test_init_is_idempotent(self, db_path: str) -> None:
        init_db(db_path)
        init_db(db_path)

    def test_creates_parent_directory(self, tmp_path: Path) -> None:
        """get_connection creates parent directories if needed."""
        db_path = str(tmp_path / "subdir" / "nested" / "test.db")
        conn = get_connection(db_path)
        conn.close()
        assert Path(db_path).exists()


class TestMemes:
    """Tests for meme storage and listing."""

    def test_insert_and_get(self, db_path: str) -> None:
        insert_meme(db_path, {"id": "m1", "title": "T", "tags": ["Cats", " dogs "], "created_at": NOW})
        meme = get_meme(db_path, "m1")
        assert meme["title"] == "T"
        assert meme["tags"] == ["cats", "dogs"]
        assert meme["status"] == "public"
        assert meme["like_count"] == 0

    def test_get_missing(self, db_path: str) -> None:
        assert get_meme(db_path, "nope") is None

    def test_list_excludes_private(self, seeded_db: str) -> None:
        ids = {m["id"] for m in list_memes(seeded_db)}
        assert "m6" not in ids
        assert len(ids) == 5

    def test_list_ordered_by_hot_score(self, seeded_db: str) -> None:
        ids = [m["id"] for m in list_memes(seeded_db)]
        assert ids == ["m2", "m1", "m3", "m4", "m5"]

    def test_list_filters(self, seeded_db: str) -> None:
        recent = list_memes(seeded_db, created_since=NOW - DAY, order_by="created_at")
        assert [m["id"] for m in recent] == ["m1", "m5"]
        edited = list_memes(seeded_db, modified_since=NOW - 7 * DAY)
        assert [m["id"] for m in edited] == ["m3"]

    def test_list_by_tag(self, seeded_db: str) -> None:
        ids = {m["id"] for m in list_memes(seeded_db, tags=["dogs"])}
        assert ids == {"m2", "m5"}

    def test_list_limit(self, seeded_db: str) -> None:
        assert len(list_memes(seeded_db, limit=2)) == 2

    def test_update_hot_score(self, seeded_db: str) -> None:
        update_hot_score(seeded_db, "m4", 42.5)
        assert get_meme(seeded_db, "m4")["hot_score"] == 42.5


class TestInteractions:
    """Tests for interaction recording."""

    def test_new_interaction_bumps_counter(self, seeded_db: str) -> None:
        before = get_meme(seeded_db, "m4")["like_count"]
        assert record_interaction(seeded_db, "u9", "m4", "like", NOW) is True
        assert get_meme(seeded_db, "m4")["like_count"] == before + 1

    def test_repeat_interaction_does_not_double_count(self, seeded_db: str) -> None:
        record_interaction(seeded_db, "u9", "m4", "view", NOW)
        views = get_meme(seeded_db, "m4")["views"]
        assert record_interaction(seeded_db, "u9", "m4", "view", NOW + 10) is False
        assert get_meme(seeded_db, "m4")["views"] == views
        [interaction] = get_user_interactions(seeded_db, "u9")
        assert interaction["created_at"] == NOW + 10

    def test_user_interactions_carry_tags(self, seeded_db: str) -> None:
        interactions = get_user_interactions(seeded_db, "u3")
        assert interactions == [
            {"meme_id": "m2", "type": "like", "created_at": NOW - 3600.0, "tags": ["dogs"]}
        ]

    def test_all_interactions(self, seeded_db: str) -> None:
        rows = get_all_interactions(seeded_db)
        assert len(rows) == 7
        assert ("u3", "m2", "like", NOW - 3600.0) in rows


class TestFollowsAndNotifications:
    def test_followers(self, db_path: str) -> None:
        assert insert_follow(db_path, "b", "a", NOW) is True
        assert insert_follow(db_path, "c", "a", NOW) is True
        assert insert_follow(db_path, "c", "a", NOW) is False
        assert get_followers(db_path, "a") == ["b", "c"]

    def test_all_follows(self, db_path: str) -> None:
        insert_follow(db_path, "c", "a", NOW)
        insert_follow(db_path, "a", "c", NOW)
        insert_follow(db_path, "b", "a", NOW)
        assert get_all_follows(db_path) == [("a", "c"), ("b", "a"), ("c", "a")]

    def test_notification_written_once_per_job_and_user(self, db_path: str) -> None:
        assert insert_notification(db_path, "1", "alice", "like", NOW, actor_id="bob") is True
        assert insert_notification(db_path, "1", "alice", "like", NOW, actor_id="bob") is False
        assert insert_notification(db_path, "2", "alice", "like", NOW, actor_id="bob") is True
        notifications = get_notifications(db_path, "alice")
        assert [n["job_id"] for n in notifications] == ["1", "2"]
        assert notifications[0]["actor_id"] == "bob"
