"""
Module ORM Registry (``mfg_modules._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy ORM model is imported so that ``Base.metadata``
contains its table before tables are created, and so that append-only
models have been decorated before their listeners are attached.

Architecture position
---------------------
**Modules layer** -- utility.  The kernel's ``create_tables()`` and
``register_immutability_listeners()`` call in here lazily; nothing else
in ``mfg_kernel`` imports module code.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``mfg_modules.*.orm`` module.

    Kernel tables come first; module tables reference them by foreign key
    (raw_materials.id, finished_goods_batches.id).  Idempotent.
    """
    import mfg_kernel.models  # noqa: F401
    # fmt: off
    import mfg_modules.procurement.orm  # noqa: F401
    import mfg_modules.bom.orm  # noqa: F401
    import mfg_modules.production.orm  # noqa: F401
    import mfg_modules.sales.orm  # noqa: F401
    # fmt: on
