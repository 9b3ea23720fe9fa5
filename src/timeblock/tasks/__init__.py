"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Occurrence) and field normalization
- task_store.py: SQLite-backed storage + range queries
- occurrences.py: expands one-off and weekly-recurring tasks into occurrences
- task_scheduler.py: self-renewing warning timers (ending / upcoming / short break)
- task_runner.py: hosts the scheduler's event loop in a background thread
- task_api.py: create/update/delete/relocate helpers that trigger rebuilds
- progress.py: elapsed/remaining snapshots for live displays
"""
