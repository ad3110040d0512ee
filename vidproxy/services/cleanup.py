import logging
import os
import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from vidproxy.config.settings import Config
from vidproxy.core.errors import InvalidInputError
from vidproxy.services.files import resolve_in_directory

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "retention-sweep"


@dataclass
class SweepReport:
    scanned: int = 0
    deleted: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


def sweep(directory: str, max_age_seconds: float, now: Optional[float] = None) -> SweepReport:
    """Delete files older than max_age_seconds; per-file failures do not stop the sweep"""
    report = SweepReport()
    if not os.path.isdir(directory):
        return report

    now = time.time() if now is None else now
    hours = max_age_seconds / 3600
    logger.info(f"Sweeping {directory} for files older than {hours:g}h")

    for name in sorted(os.listdir(directory)):
        path = os.path.join(directory, name)
        try:
            st = os.stat(path)
            if not os.path.isfile(path):
                continue
            report.scanned += 1
            if now - st.st_mtime <= max_age_seconds:
                continue
            os.remove(path)
            report.deleted.append(name)
            logger.info(f"Removed expired file: {name}")
        except OSError as e:
            report.failed.append(name)
            logger.error(f"Failed to remove {name}: {e}")

    logger.info(
        f"Sweep finished: {len(report.deleted)} removed, {len(report.failed)} failed, "
        f"{report.scanned} scanned"
    )
    return report


def disk_usage(directory: str) -> Tuple[int, int]:
    """(total bytes, file count) of the output directory"""
    total = 0
    count = 0
    if not os.path.isdir(directory):
        return total, count
    for entry in os.scandir(directory):
        try:
            if entry.is_file():
                total += entry.stat().st_size
                count += 1
        except OSError as e:
            logger.warning(f"Could not stat {entry.name}: {e}")
    return total, count


def remove_file(directory: str, name: str) -> bool:
    """Delete one downloaded file. False when it was already gone"""
    path = resolve_in_directory(directory, name)
    if path is None:
        raise InvalidInputError("error.invalid_filename")
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    return True


def run_scheduled_sweep(cfg: Config) -> SweepReport:
    return sweep(cfg.download.output_dir, cfg.cleanup.max_age_hours * 3600)


def start_scheduler(cfg: Config) -> AsyncIOScheduler:
    """Schedule the retention sweep on the running event loop"""
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        run_scheduled_sweep,
        CronTrigger.from_crontab(cfg.cleanup.schedule, timezone="UTC"),
        args=[cfg],
        id=SWEEP_JOB_ID,
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    scheduler.start()
    logger.info(f"Retention sweep scheduled ({cfg.cleanup.schedule})")
    return scheduler
