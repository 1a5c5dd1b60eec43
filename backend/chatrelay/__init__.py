"""chatrelay — streaming chat relay with tool coordination and resilient upstream calls.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)

Design Decisions:
    - Empty __init__.py: explicit imports only, no star exports
"""
