"""
Tests for the scheduled cleanup task.
"""

from datetime import timedelta

from celery.schedules import crontab

import celery_task.maintenance_task as maintenance_task
from celery_task import celery_app


class TestCleanupTask:
    def test_beat_schedule(self):
        entry = celery_app.conf.beat_schedule["cleanup-old-error-logs"]
        assert entry["task"] == "errors.cleanup_old_logs"
        assert isinstance(entry["schedule"], crontab)

    def test_deletes_expired_logs(self, monkeypatch, session_factory, store, error_logger):
        monkeypatch.setattr(maintenance_task, "get_session_factory", lambda: session_factory)

        old = error_logger.build_record("error", "old", None, {"url": "/x"})
        store.upsert(old.model_copy(update={"timestamp": old.timestamp - timedelta(days=45)}))
        store.upsert(error_logger.build_record("error", "fresh", None, {"url": "/x"}))

        assert maintenance_task.cleanup_old_logs() == 1
        assert maintenance_task.cleanup_old_logs() == 0
