from apscheduler.triggers.cron import CronTrigger

from scheduler import SchedulerManager


class RecordingSweep:
    def __init__(self) -> None:
        self.sources: list[str] = []

    def run(self, source: str = "manual"):
        self.sources.append(source)
        return 0


def test_start_registers_monthly_archive_job() -> None:
    manager = SchedulerManager(sweep=RecordingSweep())
    manager.start()
    try:
        job = manager.scheduler.get_job("archive_monthly")
        assert job is not None
        assert isinstance(job.trigger, CronTrigger)
        fields = {field.name: str(field) for field in job.trigger.fields}
        assert (fields["day"], fields["hour"], fields["minute"]) == ("1", "2", "0")
        assert job.trigger.timezone == manager.scheduler.timezone
        assert job.args == ("monthly_02:00",)
        assert job.misfire_grace_time == 3600
        assert job.max_instances == 1
    finally:
        manager.stop()
    assert not manager.scheduler.running


def test_run_job_delegates_to_sweep() -> None:
    sweep = RecordingSweep()
    manager = SchedulerManager(sweep=sweep)

    manager._run_job("monthly_02:00")
    manager._run_job()

    assert sweep.sources == ["monthly_02:00", "manual"]


def test_stop_without_start_is_a_no_op() -> None:
    manager = SchedulerManager(sweep=RecordingSweep())
    manager.stop()
    assert not manager.scheduler.running
