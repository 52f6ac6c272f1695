# tests/test_scheduler.py
from unittest.mock import MagicMock, patch
from schedulers.scheduler import AttendanceScheduler


def test_scheduler_creation():
    """スケジューラが正しく生成されること"""
    scheduler = AttendanceScheduler(
        interval_minutes=15,
        job_func=MagicMock(),
    )
    assert scheduler._interval == 15
    job = scheduler._scheduler.get_job("attendance_refresh")
    assert job is not None
    assert job.max_instances == 1


def test_scheduler_without_immediate_run():
    """即時実行しない場合もジョブが登録されること"""
    scheduler = AttendanceScheduler(
        interval_minutes=5,
        job_func=MagicMock(),
        run_immediately=False,
    )
    assert scheduler._scheduler.get_job("attendance_refresh") is not None


def test_scheduler_start_stop():
    """スケジューラの開始・停止"""
    mock_func = MagicMock()
    scheduler = AttendanceScheduler(interval_minutes=5, job_func=mock_func)

    with patch.object(scheduler._scheduler, "start") as mock_start:
        scheduler.start()
        mock_start.assert_called_once()

    with patch.object(scheduler._scheduler, "shutdown") as mock_shutdown:
        scheduler.stop()
        mock_shutdown.assert_called_once_with(wait=False)
