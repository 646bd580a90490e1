"""
Polling service for the print job queue.
Fetches pending jobs on a fixed interval, prints them one at a time and
reports each job's outcome back to the queue.

Retry state lives in memory only: jobs that were active when the process
stopped are picked up again as new jobs on the next fetch, since the queue
still lists them as pending.
"""
import logging
import threading
import time
from datetime import datetime
from typing import Dict, List, Optional

from .config import ServiceSettings
from .job_client import JobAPIError, JobClient
from .models import JobRetryRecord, JobStatus, PrintResult, ServiceStatus

logger = logging.getLogger(__name__)

CONNECTION_ERROR_SIGNATURES = (
    'timeout',
    'timed out',
    'refused',
    'reset',
    'unreachable',
    'no route to host',
    'etimedout',
    'econnrefused',
    'econnreset',
    'bağlanılamadı',
)


def is_connection_error(message: Optional[str]) -> bool:
    """Check whether an error message describes a failure to reach the printer."""
    if not message:
        return False
    lowered = message.lower()
    return any(signature in lowered for signature in CONNECTION_ERROR_SIGNATURES)


def _timestamp() -> str:
    return datetime.now().strftime('%d.%m.%Y %H:%M:%S')


class PollingService:
    """
    Service that drives print jobs from the queue to the printers.

    Each job gets two independent budgets: ``max_retries`` attempts in total,
    and ``connection_failure_limit`` consecutive connection errors. Whichever
    runs out first ends the job, which is then reported to the queue as failed.

    ``total_jobs_processed`` counts successful prints, not distinct jobs: a job
    reprinted because its status update failed is counted once per print.
    """

    def __init__(self, job_client: JobClient, router, thermal_printer,
                 settings: Optional[ServiceSettings] = None):
        """
        Initialize the polling service.

        Args:
            job_client: Client for the job queue API
            router: Printer router used for every print attempt
            thermal_printer: Thermal print path, initialized on start and closed on stop
            settings: Service settings; defaults apply when omitted
        """
        self.job_client = job_client
        self.router = router
        self.thermal_printer = thermal_printer
        self.settings = settings or ServiceSettings()

        self.poll_interval = self.settings.poll_interval
        self.max_retries = self.settings.max_retries
        self.connection_failure_limit = self.settings.connection_failure_limit

        self._active_jobs: Dict[int, JobRetryRecord] = {}
        self._status = ServiceStatus()
        self._running = False
        self._poll_lock = threading.Lock()
        self._lifecycle_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._worker_thread: Optional[threading.Thread] = None

        logger.info("Polling service initialized")

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self):
        """
        Start polling: prepare the print path, probe the printer, poll once
        immediately and then on every interval.

        Raises:
            Exception: Whatever the print path raised while initializing
        """
        with self._lifecycle_lock:
            if self._running:
                logger.warning("Polling service is already running")
                return

            try:
                self.thermal_printer.initialize()
            except Exception as e:
                logger.error(f"Service start failed: {e}")
                self._status.last_error = str(e)
                raise

            if not self.thermal_printer.test_connection():
                logger.warning("Could not connect to the printer, starting the service anyway")

            self._running = True
            self._stop_event.clear()
            self._status.is_running = True
            self._status.started_at = datetime.now().isoformat()
            self._status.last_error = None
            logger.info("Polling service started")

        self.poll()

        with self._lifecycle_lock:
            if not self._running:
                return
            self._worker_thread = threading.Thread(
                target=self._worker_loop, name='job-poller', daemon=True
            )
            self._worker_thread.start()

    def stop(self):
        """Stop polling. A tick in progress finishes before the print path is released."""
        with self._lifecycle_lock:
            if not self._running:
                logger.warning("Polling service is already stopped")
                return

            self._running = False
            self._stop_event.set()
            worker = self._worker_thread
            self._worker_thread = None

        if worker and worker.is_alive() and worker is not threading.current_thread():
            worker.join()

        # Wait for a tick started outside the worker thread
        with self._poll_lock:
            self._status.is_running = False

        self.thermal_printer.close()
        logger.info("Polling service stopped")

    def _worker_loop(self):
        """Run ticks at a fixed rate; ticks missed while a tick overran are dropped."""
        next_tick = time.monotonic() + self.poll_interval
        while not self._stop_event.wait(timeout=max(0.0, next_tick - time.monotonic())):
            self.poll()
            now = time.monotonic()
            next_tick += self.poll_interval
            if next_tick <= now:
                skipped = int((now - next_tick) // self.poll_interval) + 1
                logger.debug(f"Poll overran the interval, skipping {skipped} tick(s)")
                next_tick += skipped * self.poll_interval
        logger.info("Polling worker loop stopped")

    def poll(self):
        """Run one poll cycle, unless one is already in progress."""
        if not self._poll_lock.acquire(blocking=False):
            logger.warning("Previous poll still in progress, skipping")
            return

        try:
            self._status.last_poll_time = datetime.now().isoformat()

            try:
                jobs = self.job_client.fetch_pending_jobs()
            except JobAPIError as e:
                logger.error(f"Polling error: {e}")
                self._status.last_error = str(e)
                return

            if jobs:
                logger.info(f"Found {len(jobs)} print job(s)")
            for job in jobs:
                if job.auto_id not in self._active_jobs:
                    self._active_jobs[job.auto_id] = JobRetryRecord(job=job)
                    logger.info(f"New job added: ID={job.auto_id}")

            # Every active job gets a turn, not just the ones fetched this tick
            for job_id, record in list(self._active_jobs.items()):
                try:
                    self._process_record(job_id, record)
                except Exception as e:
                    self._status.last_error = str(e) or e.__class__.__name__
                    logger.error(
                        f"Job exception: ID={job_id}, Attempt={record.attempts}/{self.max_retries}: {e}",
                        exc_info=True
                    )

        except Exception as e:
            logger.error(f"Polling error: {e}", exc_info=True)
            self._status.last_error = str(e) or e.__class__.__name__
        finally:
            self._poll_lock.release()

    def _process_record(self, job_id: int, record: JobRetryRecord):
        if record.attempts >= self.max_retries:
            logger.error(f"Job ID={job_id} reached the maximum of {self.max_retries} attempts, giving up")
            self._abandon(job_id, f"Failed after {self.max_retries} attempts - {_timestamp()}")
            return

        record.attempts += 1
        record.last_attempt = time.time()
        logger.info(f"Printing job: ID={job_id}, Attempt={record.attempts}/{self.max_retries}")

        result: PrintResult = self.router.print_job(record.job)

        if result.success:
            self._status.total_jobs_processed += 1
            record.consecutive_connection_failures = 0

            acknowledged = self.job_client.update_job_status(
                job_id, JobStatus.COMPLETED, f"Printed successfully - {_timestamp()}"
            )
            if acknowledged:
                self._active_jobs.pop(job_id, None)
                logger.info(f"Job completed and removed: ID={job_id}")
            else:
                # Allow at most one more attempt before the job is given up
                record.attempts = max(record.attempts, self.max_retries - 1)
                logger.warning(f"Job printed but status update failed, keeping it: ID={job_id}")
            return

        error = result.error or 'Unknown error'
        self._status.last_error = error

        if not result.retryable:
            logger.error(f"Job ID={job_id} cannot be printed, giving up: {error}")
            self._abandon(job_id, f"Not printable: {error} - {_timestamp()}")
            return

        if is_connection_error(error):
            record.consecutive_connection_failures += 1
            logger.warning(
                f"Connection error: ID={job_id}, "
                f"Consecutive={record.consecutive_connection_failures}/{self.connection_failure_limit}, "
                f"Error: {error}"
            )
            if record.consecutive_connection_failures >= self.connection_failure_limit:
                logger.error(
                    f"Job ID={job_id} hit {self.connection_failure_limit} connection errors in a row, giving up"
                )
                self._abandon(
                    job_id,
                    f"Printer unreachable after {self.connection_failure_limit} connection errors - {_timestamp()}"
                )
                return
        else:
            record.consecutive_connection_failures = 0

        logger.warning(f"Job failed: ID={job_id}, Attempt={record.attempts}/{self.max_retries}, Error: {error}")

    def _abandon(self, job_id: int, notes: str):
        """Report a job as finished unsuccessfully and drop it from the active set."""
        self.job_client.update_job_status(job_id, JobStatus.COMPLETED, notes)
        self._status.total_jobs_failed += 1
        self._active_jobs.pop(job_id, None)

    def get_status(self) -> ServiceStatus:
        return self._status.copy()

    def get_active_jobs(self) -> List[JobRetryRecord]:
        return list(self._active_jobs.values())

    def update_config(self, poll_interval: Optional[float] = None,
                      api_base_url: Optional[str] = None):
        """Change the poll interval or the queue URL; a running service is restarted to apply it."""
        if poll_interval is not None:
            if poll_interval <= 0:
                raise ValueError("poll_interval must be positive")
            self.poll_interval = poll_interval
        if api_base_url is not None:
            self.job_client.update_base_url(api_base_url)

        if self._running:
            logger.info("Configuration changed, restarting the service...")
            self.stop()
            self.start()
