"""
Pure domain layer.

Value objects, the injectable clock, workflow definitions and command
validation helpers.  No ORM, no database, no I/O (SystemClock excepted).

Import from the submodules directly (``mfg_kernel.domain.clock``,
``mfg_kernel.domain.workflow``, ...); ``mfg_kernel.exceptions`` depends on
``values`` and ``workflow`` depends on ``exceptions``.
"""
