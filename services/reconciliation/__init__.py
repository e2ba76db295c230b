"""
Tier reconciliation engine.

One pass aggregates each linked user's balance, resolves their tier and
synchronizes their tier role on the community platform. Entry points:

- ``services.reconciliation.runner.BatchRunner``: a single pass
- ``services.reconciliation.scheduler.Scheduler``: scheduled and manual triggers
"""
