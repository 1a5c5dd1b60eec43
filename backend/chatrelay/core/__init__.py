"""Core Layer — pure protocol logic, no IO, no network, no FastAPI.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or client/
    - Frame codec and artifact transitions are pure and deterministic

Design Decisions:
    - Functional core separated from imperative shell: the same codec runs on
      the producer (server) and the consumer (client SDK)
"""
