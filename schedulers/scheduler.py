# schedulers/scheduler.py
from datetime import datetime
from typing import Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger


class AttendanceScheduler:
    """APSchedulerによる勤怠データの定期再取得

    ジョブはイベントループ上で実行されるため、コルーチン関数をそのまま登録できる。
    起動直後に1回実行し、以降は interval_minutes ごとに実行する。
    """

    def __init__(self, interval_minutes: int, job_func: Callable, run_immediately: bool = True):
        self._interval = interval_minutes
        self._job_func = job_func
        self._scheduler = AsyncIOScheduler()
        job_options = {}
        if run_immediately:
            job_options["next_run_time"] = datetime.now()
        self._scheduler.add_job(
            self._job_func,
            trigger=IntervalTrigger(minutes=self._interval),
            id="attendance_refresh",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **job_options,
        )

    def start(self):
        """スケジューラ開始（実行中のイベントループ内で呼ぶこと）"""
        self._scheduler.start()

    def stop(self):
        """スケジューラ停止"""
        self._scheduler.shutdown(wait=False)
