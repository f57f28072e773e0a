"""Rotation-aware assignment scheduler for church programs and cleaning groups.

Modules:
- config: load and validate configuration (YAML or JSON)
- errors: exception taxonomy
- domain: value types, typed requests, ORM models and repositories
- services: roster, role catalog, assignment ledger, commit locks, ranking, program service
- engine: rotation and random schedulers, cleaning-group partitioner, batch orchestrator
- io: CSV import/export
- validator: pandas summaries of batches and programs
- cli: command-line interface entrypoints
"""

__all__ = [
    "config",
    "errors",
    "domain",
    "services",
    "engine",
    "io",
    "validator",
    "cli",
]
