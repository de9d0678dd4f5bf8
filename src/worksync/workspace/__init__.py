"""
Workspace subsystem.

Components:
- models.py: data structures (Account, Task, Workspace) and their (de)serialization
- store.py: SQLite / in-memory persistence store + admin snapshot export/import
- gateway.py: the boundary to the store (guest short-circuit, latency, per-account write lock)
- scheduler.py: debounce timer and sync status state machine
- engine.py: the live workspace for one session and its mutations
- views.py: diary / planner / future filters and display helpers
"""
