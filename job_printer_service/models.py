"""
Data models for the Job Printer Service.
Defines print jobs as delivered by the job queue API, print results,
per-job retry bookkeeping and the aggregate service status.
"""
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional


class JobStatus:
    """Job status codes used by the job queue API."""
    PENDING = 0
    COMPLETED = 2  # terminal, outcome is recorded in externalNotes


@dataclass(frozen=True)
class PrinterJob:
    """
    A print job fetched from the job queue.
    Immutable once fetched; ``auto_id`` is its only identity.
    """
    auto_id: int
    printer_name: str = ""
    alt_printer_name: Optional[str] = None
    content: str = ""
    external_notes: str = ""
    station_id: Optional[int] = None
    job_status: int = JobStatus.PENDING
    reference_number: str = ""
    add_date_time: Optional[str] = None
    process_date_time: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'PrinterJob':
        """
        Create a PrinterJob from a job queue API record.

        Args:
            data: Raw job dictionary as returned by the API

        Returns:
            PrinterJob instance

        Raises:
            ValueError: If the record has no integer AutoID
        """
        auto_id = data.get('AutoID')
        if isinstance(auto_id, bool) or not isinstance(auto_id, int):
            try:
                auto_id = int(str(auto_id).strip())
            except (TypeError, ValueError):
                raise ValueError(f"Invalid AutoID in job record: {data.get('AutoID')!r}")

        alt = data.get('AltPrinterName')
        return cls(
            auto_id=auto_id,
            printer_name=data.get('PrinterName') or '',
            alt_printer_name=alt if alt else None,
            content=data.get('Content') or '',
            external_notes=data.get('ExternalNotes') or '',
            station_id=data.get('StationID'),
            job_status=data.get('JobStatus', JobStatus.PENDING),
            reference_number=data.get('ReferenceNumber') or '',
            add_date_time=data.get('AddDateTime'),
            process_date_time=data.get('ProcessDateTime'),
        )


@dataclass
class PrintResult:
    """Outcome of a single print attempt."""
    success: bool
    job_id: int
    error: Optional[str] = None
    retryable: bool = True  # False for static errors a retry cannot fix

    def to_dict(self) -> Dict[str, Any]:
        result = {'success': self.success, 'jobId': self.job_id}
        if self.error is not None:
            result['error'] = self.error
        return result


@dataclass
class JobRetryRecord:
    """Retry bookkeeping for one active job."""
    job: PrinterJob
    attempts: int = 0
    last_attempt: float = 0.0
    consecutive_connection_failures: int = 0


@dataclass
class ServiceStatus:
    """Aggregate status of the polling service. Written only by the poll loop.

    ``total_jobs_processed`` counts successful prints; ``total_jobs_failed``
    counts jobs given up.
    """
    is_running: bool = False
    started_at: Optional[str] = None
    last_poll_time: Optional[str] = None
    total_jobs_processed: int = 0
    total_jobs_failed: int = 0
    last_error: Optional[str] = None

    def copy(self) -> 'ServiceStatus':
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase status snapshot."""
        return {
            'isRunning': self.is_running,
            'startedAt': self.started_at,
            'lastPollTime': self.last_poll_time,
            'totalJobsProcessed': self.total_jobs_processed,
            'totalJobsFailed': self.total_jobs_failed,
            'lastError': self.last_error,
        }
