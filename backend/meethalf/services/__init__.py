"""Services Layer — imperative shell around the pure core.

Invariants:
    - Services own DB reads/writes and side effects (broadcast, push, maps)
    - Business rules live in core/ and are called from here

Design Decisions:
    - One service class per aggregate, constructed per request with (db, ...)
"""
