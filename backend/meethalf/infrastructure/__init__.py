"""Infrastructure Layer — external service clients and cross-cutting concerns.

Invariants:
    - Infrastructure never imports from core/ domain logic (errors excepted)
    - All external calls wrapped with retry/timeout/error mapping

Design Decisions:
    - Thin wrappers over raw SDKs: Pusher, Beams, Google Maps, PyJWT
"""
