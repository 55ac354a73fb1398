"""Services Layer — async orchestration of core rules over the SwapStore.

Invariants:
    - Services receive their collaborators (store, clock, retry policy) via
      constructors; nothing is looked up from module globals
    - Business decisions live in core/; services sequence reads and writes

Design Decisions:
    - Impureim sandwich: read -> pure validate/plan -> guarded write
"""
