from sqlalchemy.pool import StaticPool

from portfolio.core.database import build_engine


class TestBuildEngine:

    def test_in_memory_sqlite_shares_one_connection(self):
        engine = build_engine("sqlite://")
        assert isinstance(engine.pool, StaticPool)
        engine.dispose()

    def test_file_sqlite_uses_a_regular_pool(self, tmp_path):
        engine = build_engine(f"sqlite:///{tmp_path / 'portfolio.db'}")
        assert not isinstance(engine.pool, StaticPool)
        engine.dispose()
