"""
Manufacturing Kernel

The shared-state core of the manufacturing inventory engine:
- Raw-material ledger cells with row-locked check-then-act mutation
- Finished-goods batches with FIFO allocation
- Append-only movement log for every quantity change
- Typed, machine-readable errors with itemized shortages
"""

__version__ = "0.1.0"
