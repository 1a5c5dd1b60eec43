"""Services Layer — stream multiplexer, tool coordination, chat runner, tool handlers.

Invariants:
    - One StreamMultiplexer per chat request, shared by the runner and every tool
    - Tool registration is explicit (no auto-discovery)
"""
