"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskState, DailyStatistic, ...)
- normalizer.py: raw project item -> Task
- stats.py: counts, overdue predicate, groupings
- task_store.py: SQLite-backed reconciler + read queries
- task_scheduler.py: cron-driven poll cycle with at-most-one concurrent run
- backfill.py: synthetic daily statistics from current task timestamps
- task_api.py: read views and manual triggers used by the console commands
"""
