"""
Stock Kernel - menu item inventory core

Per-item stock tracking with:
- Mode-conditional stock fields (TRACKED / UNLIMITED)
- Atomic item update + ledger insert
- Row-locked read-modify-write (no lost updates)
- Append-only stock adjustment ledger
"""

__version__ = "0.1.0"
