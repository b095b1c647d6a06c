"""
Unit tests for scheduler job configuration.
"""

from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from jobs.scheduler import create_scheduler


def _noop():
    return None


class TestCreateScheduler:
    """Test registered jobs."""

    def test_jobs_registered(self):
        scheduler = create_scheduler(_noop, _noop)

        jobs = {job.id: job for job in scheduler.get_jobs()}

        assert set(jobs) == {"binary_matching", "credit_retry"}
        assert isinstance(jobs["binary_matching"].trigger, CronTrigger)
        assert isinstance(jobs["credit_retry"].trigger, IntervalTrigger)

    def test_single_instance_per_job(self):
        scheduler = create_scheduler(_noop, _noop)

        for job in scheduler.get_jobs():
            assert job.max_instances == 1
            assert job.coalesce is True

    def test_not_started(self):
        assert not create_scheduler(_noop, _noop).running
