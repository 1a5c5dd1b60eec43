"""Infrastructure Layer — upstream client, resilience policies, stores, logging.

Invariants:
    - Cache, circuit breakers and performance metrics are process-wide and
      synchronized; nothing else here is shared across sessions
"""
