"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskStatus, stats snapshots)
- task_store.py: SQLite-backed storage + query/update helpers
- task_ledger.py: status transitions and retry accounting
- handler_registry.py: task name -> handler mapping
- admission.py: concurrency / rate-limited admission gate
- task_dispatcher.py: poll cycle and per-task execution
- queue_service.py: start/stop/pause/resume and stats
- task_api.py: small high-level helpers used by the rest of the app
"""
