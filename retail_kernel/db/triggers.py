"""
Module: retail_kernel.db.triggers
Responsibility: Installing, removing and verifying database-level append-only
    triggers (Layer 2 of 2).  This is the database-level complement to the
    ORM-level listeners in db/immutability.py.
Architecture position: Kernel > DB.  May import from db/ only.  MUST NOT
    import from models/, services/, selectors/, domain/, or outer layers.

Invariants enforced (one UPDATE and one DELETE trigger per table):
    - stock_movements: no UPDATE, no DELETE.
    - goods_receipts, goods_receipt_lines: no UPDATE, no DELETE.
    - sales_payments: no UPDATE, no DELETE.
    - supplier_payments: no UPDATE, no DELETE.
    - service_order_logs: no UPDATE, no DELETE.

Failure modes:
    - PostgreSQL RAISE EXCEPTION / SQLite RAISE(ABORT) on any violation,
      surfaced by SQLAlchemy as IntegrityError or DatabaseError.

Audit relevance:
    Even if the ORM layer is bypassed (raw SQL, bulk ``update()``), the
    database refuses to rewrite stock history.
"""

from sqlalchemy import text
from sqlalchemy.engine import Engine

APPEND_ONLY_TABLES = (
    "stock_movements",
    "goods_receipts",
    "goods_receipt_lines",
    "sales_payments",
    "supplier_payments",
    "service_order_logs",
)

_PG_FUNCTION = "retail_reject_append_only_change"


def _trigger_name(table: str, operation: str) -> str:
    return f"trg_{table}_append_only_{operation.lower()}"


ALL_TRIGGER_NAMES = [
    _trigger_name(table, op)
    for table in APPEND_ONLY_TABLES
    for op in ("UPDATE", "DELETE")
]


def _sqlite_install_statements() -> list[str]:
    statements = []
    for table in APPEND_ONLY_TABLES:
        for op in ("UPDATE", "DELETE"):
            statements.append(
                f"CREATE TRIGGER IF NOT EXISTS {_trigger_name(table, op)} "
                f"BEFORE {op} ON {table} "
                f"BEGIN SELECT RAISE(ABORT, '{table} is append-only: {op} rejected'); END"
            )
    return statements


def _postgres_install_statements() -> list[str]:
    statements = [
        f"""
        CREATE OR REPLACE FUNCTION {_PG_FUNCTION}() RETURNS trigger AS $$
        BEGIN
            RAISE EXCEPTION '% is append-only: % rejected', TG_TABLE_NAME, TG_OP;
        END;
        $$ LANGUAGE plpgsql
        """
    ]
    for table in APPEND_ONLY_TABLES:
        for op in ("UPDATE", "DELETE"):
            name = _trigger_name(table, op)
            statements.append(f"DROP TRIGGER IF EXISTS {name} ON {table}")
            statements.append(
                f"CREATE TRIGGER {name} BEFORE {op} ON {table} "
                f"FOR EACH ROW EXECUTE FUNCTION {_PG_FUNCTION}()"
            )
    return statements


def _drop_statements(dialect: str) -> list[str]:
    statements = []
    for table in APPEND_ONLY_TABLES:
        for op in ("UPDATE", "DELETE"):
            name = _trigger_name(table, op)
            if dialect == "postgresql":
                statements.append(f"DROP TRIGGER IF EXISTS {name} ON {table}")
            else:
                statements.append(f"DROP TRIGGER IF EXISTS {name}")
    if dialect == "postgresql":
        statements.append(f"DROP FUNCTION IF EXISTS {_PG_FUNCTION}()")
    return statements


def _execute_all(engine: Engine, statements: list[str]) -> None:
    # pysqlite executes one statement per call, so never batch them.
    with engine.connect() as conn:
        for statement in statements:
            conn.execute(text(statement))
        conn.commit()


# =============================================================================
# Public API
# =============================================================================


def install_immutability_triggers(engine: Engine) -> None:
    """
    Install append-only triggers for every table in APPEND_ONLY_TABLES.

    Preconditions: Tables must exist (call after create_all()).
    Postconditions: All triggers in ALL_TRIGGER_NAMES are installed.
        Installation is idempotent on both dialects.
    """
    if engine.dialect.name == "postgresql":
        _execute_all(engine, _postgres_install_statements())
    else:
        _execute_all(engine, _sqlite_install_statements())


def uninstall_immutability_triggers(engine: Engine) -> None:
    """
    Remove the append-only triggers.

    WARNING: Only for tests and maintenance scripts.  Re-install immediately.
    """
    _execute_all(engine, _drop_statements(engine.dialect.name))


def get_installed_triggers(engine: Engine) -> list[str]:
    """List the append-only triggers currently present in the database."""
    if engine.dialect.name == "postgresql":
        query = text("SELECT tgname FROM pg_trigger WHERE NOT tgisinternal ORDER BY tgname")
    else:
        query = text("SELECT name FROM sqlite_master WHERE type = 'trigger' ORDER BY name")

    with engine.connect() as conn:
        names = [row[0] for row in conn.execute(query)]
    return [name for name in names if name in ALL_TRIGGER_NAMES]


def triggers_installed(engine: Engine) -> bool:
    """True iff every trigger in ALL_TRIGGER_NAMES is present."""
    return len(get_installed_triggers(engine)) == len(ALL_TRIGGER_NAMES)
