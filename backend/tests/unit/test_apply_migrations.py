from pathlib import Path

from scripts.apply_migrations import MIGRATIONS_DIR, pending_migrations


def test_pending_migrations_skip_applied_in_order():
    paths = [Path("0003_c.sql"), Path("0001_a.sql"), Path("0002_b.sql")]

    pending = pending_migrations(paths, {"0002"})

    assert [version for version, _ in pending] == ["0001", "0003"]


def test_schema_migration_is_shipped():
    names = sorted(path.name for path in MIGRATIONS_DIR.glob("*.sql"))
    assert names[0] == "0001_social_graph.sql"
    sql = (MIGRATIONS_DIR / names[0]).read_text()
    assert "UNIQUE (requester_id, target_id)" in sql
    assert "CHECK (follower_id <> following_id)" in sql
