"""Engine construction, SQLite locking mode and the session_scope helper."""

import pytest
from sqlalchemy import inspect, select, text

from retail_kernel.db import engine as db_engine_module
from retail_kernel.db.engine import (
    build_engine,
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    is_postgres,
    reset_engine,
    session_scope,
)
from retail_modules.inventory.orm import LocationModel


@pytest.fixture
def module_engine(tmp_path):
    init_engine_from_url(f"sqlite:///{tmp_path / 'module.db'}")
    create_tables()
    yield get_engine()
    reset_engine()


class TestBuildEngine:
    def test_sqlite_pragmas_applied(self, tmp_path):
        engine = build_engine(f"sqlite:///{tmp_path / 'p.db'}", busy_timeout_ms=1234)
        with engine.connect() as conn:
            assert conn.execute(text("PRAGMA busy_timeout")).scalar() == 1234
            assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1
        engine.dispose()

    def test_sqlite_is_not_postgres(self, module_engine):
        assert module_engine.dialect.name == "sqlite"
        assert not is_postgres()


class TestModuleEngine:
    def test_uninitialized_engine_raises(self):
        reset_engine()
        with pytest.raises(RuntimeError):
            get_engine()
        with pytest.raises(RuntimeError):
            get_session()

    def test_session_scope_commits(self, module_engine, test_actor_id):
        with session_scope() as session:
            session.add(LocationModel(code="A", name="A", created_by_id=test_actor_id))
        with session_scope() as session:
            codes = session.execute(select(LocationModel.code)).scalars().all()
        assert codes == ["A"]

    def test_session_scope_rolls_back_on_error(self, module_engine, test_actor_id):
        with pytest.raises(RuntimeError, match="till crashed"):
            with session_scope() as session:
                session.add(LocationModel(code="B", name="B", created_by_id=test_actor_id))
                session.flush()
                raise RuntimeError("till crashed")
        with session_scope() as session:
            assert session.execute(select(LocationModel)).first() is None

    def test_reset_clears_module_state(self, module_engine):
        reset_engine()
        assert db_engine_module._engine is None
        assert db_engine_module._SessionFactory is None


    def test_session_factory_bound_to_engine(self, module_engine):
        with get_session_factory()() as session:
            assert session.get_bind() is module_engine

    def test_drop_tables(self, module_engine):
        drop_tables()
        assert "stock_items" not in inspect(module_engine).get_table_names()
