"""Entry point for the arq CLI.

    arq dailyplay.workers.settings.WorkerSettings

Runs the weekly rollover cron and accepts ``weekly_reset_now`` and
``reconcile_ledgers`` jobs.
"""

from __future__ import annotations

from dailyplay.workers.weekly_reset_worker import WeeklyResetWorkerSettings as WorkerSettings

__all__ = ["WorkerSettings"]
