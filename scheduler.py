from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.blocking import BlockingScheduler

from collector import BuyerCollector, ScanResult, build_collector
from config import RESUME_INTERVAL_HOURS
from utils.errors import ScanError
from utils.log import logger


def run_scan(contract: str, collector: Optional[BuyerCollector] = None) -> Optional[ScanResult]:
    collector = collector or build_collector()
    try:
        result = collector.collect(contract)
    except ScanError as e:
        logger.error(f"[SCHED] Scan of {contract} failed: {e}")
        return None

    if result.is_complete:
        logger.info(f"[SCHED] {contract}: complete, {len(result.buyer_addresses)} buyers")
    else:
        logger.info(
            f"[SCHED] {contract}: paused with {len(result.buyer_addresses)} buyers, "
            f"next run resumes from page {result.next_page}"
        )
    return result


def start(
    contract: str,
    hours: float = RESUME_INTERVAL_HOURS,
    blocking: bool = False,
    collector: Optional[BuyerCollector] = None,
    on_result: Optional[Callable[[Optional[ScanResult]], None]] = None,
):
    """
    Run the scan once right away, then keep resuming it every `hours` until
    it completes. Returns the scheduler, or None if the first run finished.

    `on_result` gets the outcome of every run, None for a failed one.
    """
    collector = collector or build_collector()
    job_id = f"scan-{contract.lower()}"

    def run():
        result = run_scan(contract, collector)
        if on_result is not None:
            on_result(result)
        return result is not None and result.is_complete

    # first run is synchronous
    if run():
        return None

    scheduler = BlockingScheduler() if blocking else BackgroundScheduler()

    def resume():
        if run():
            scheduler.remove_job(job_id)
            logger.info(f"[SCHED] Job {job_id} removed")
            if blocking:
                scheduler.shutdown(wait=False)

    scheduler.add_job(resume, "interval", hours=hours, id=job_id, max_instances=1, coalesce=True)
    logger.info(f"[SCHED] First run done, resuming {contract} every {hours}h")
    scheduler.start()
    return scheduler
