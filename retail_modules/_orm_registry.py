"""
Module ORM Registry (``retail_modules._orm_registry``).

Responsibility
--------------
Ensure all SQLAlchemy ORM models are imported so that ``Base.metadata``
contains their table definitions before tables are created, and so that
the append-only listeners see every ``AppendOnly`` subclass.

Architecture position
---------------------
**Modules layer** -- utility.  Imported lazily by
``retail_kernel.db.engine.create_schema`` and
``retail_kernel.db.immutability.append_only_classes``.

Usage
-----
Scripts, entrypoints, and ``tests/conftest.py`` call
``retail_kernel.db.engine.create_schema(engine)``, which imports this first.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``retail_modules.*.orm`` module.

    This function is idempotent -- repeated calls are harmless.
    """
    import retail_kernel.models  # noqa: F401
    # fmt: off
    import retail_modules.inventory.orm  # noqa: F401
    import retail_modules.payables.orm  # noqa: F401
    import retail_modules.purchasing.orm  # noqa: F401
    import retail_modules.sales.orm  # noqa: F401
    import retail_modules.service_orders.orm  # noqa: F401
    # fmt: on

