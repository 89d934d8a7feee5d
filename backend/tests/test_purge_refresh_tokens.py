import os

# Ensure required settings exist before imports.
os.environ.setdefault("SKIP_MIGRATIONS", "1")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_ACCESS_SECRET", "test-access-secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import update  # noqa: E402

from app.core.time import utcnow  # noqa: E402
from app.core.tokens import hash_token, issue_token_pair  # noqa: E402
from app.models.refresh_tokens import RefreshToken  # noqa: E402
from purge_refresh_tokens import main  # noqa: E402
from tests.factories import make_session_factory, make_tenant, make_user  # noqa: E402


@pytest.fixture
def session_factory(tmp_path):
    engine, factory = make_session_factory(tmp_path, "purge.db")
    yield factory
    engine.dispose()


def _seed(session_factory):
    with session_factory() as db:
        user = make_user(db, make_tenant(db))
        stale = issue_token_pair(db, user)
        live = issue_token_pair(db, user)
        db.execute(
            update(RefreshToken)
            .where(RefreshToken.token_hash == hash_token(stale.refresh_token))
            .values(expires_at=utcnow() - timedelta(minutes=1))
        )
        db.commit()
    return live


def test_purge_deletes_only_expired_records(session_factory, capsys):
    live = _seed(session_factory)

    assert main([], session_factory=session_factory) == 0
    assert "Deleted 1 expired refresh tokens" in capsys.readouterr().out

    with session_factory() as db:
        remaining = db.query(RefreshToken).all()
    assert [row.token_hash for row in remaining] == [hash_token(live.refresh_token)]


def test_dry_run_counts_without_deleting(session_factory, capsys):
    _seed(session_factory)

    assert main(["--dry-run"], session_factory=session_factory) == 0
    assert "1 expired refresh tokens would be deleted" in capsys.readouterr().out

    with session_factory() as db:
        assert db.query(RefreshToken).count() == 2
