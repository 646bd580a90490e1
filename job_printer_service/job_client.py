"""
Job queue API client.
Fetches pending print jobs and reports job outcomes back to the queue.
"""
import logging
import requests
from typing import List, Optional

from .models import PrinterJob

logger = logging.getLogger(__name__)


class JobAPIError(Exception):
    """Custom exception for job queue API related errors."""
    pass


class JobClient:
    """
    Client for the remote print job queue.
    Handles request management and error handling for job fetches and status updates.
    """

    def __init__(self, base_url: str, timeout: float = 10.0, fetch_limit: int = 10,
                 session: Optional[requests.Session] = None):
        """
        Initialize the job queue client.

        Args:
            base_url: Base URL of the queue API; ``/templateJob`` is appended
            timeout: Per-request timeout in seconds
            fetch_limit: Maximum number of jobs requested per fetch
            session: Optional preconfigured requests session
        """
        if not base_url:
            raise JobAPIError("Job queue base URL is required")

        self.base_url = base_url.rstrip('/')
        self.job_url = f'{self.base_url}/templateJob'
        self.timeout = timeout
        self.fetch_limit = fetch_limit

        self.session = session or requests.Session()
        self.session.headers.update({
            'Content-Type': 'application/json',
            'Accept': 'application/json'
        })

        logger.info(f"Job queue client initialized for {self.job_url}")

    def fetch_pending_jobs(self) -> List[PrinterJob]:
        """
        Fetch pending jobs from the queue.

        Returns:
            List of pending jobs in the order the queue returned them.
            Empty when the queue reports ``success: false``.

        Raises:
            JobAPIError: On network errors, non-2xx responses or invalid JSON
        """
        try:
            response = self.session.get(
                self.job_url,
                params={'status': 0, 'limit': self.fetch_limit},
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Error fetching pending jobs: {e}")
            raise JobAPIError(f"Network error: {str(e)}")

        if not response.ok:
            logger.error(f"Fetching pending jobs failed: {response.status_code} - {response.text}")
            raise JobAPIError(f"API request failed: {response.status_code} {response.reason}")

        try:
            payload = response.json()
        except ValueError as e:
            raise JobAPIError(f"Invalid JSON in job response: {e}")

        if not isinstance(payload, dict):
            raise JobAPIError("Unexpected job response shape")

        if not payload.get('success'):
            logger.warning(f"Job queue returned an unsuccessful response: {payload.get('message')}")
            return []

        jobs = []
        for record in payload.get('data') or []:
            try:
                jobs.append(PrinterJob.from_api(record))
            except (ValueError, AttributeError) as e:
                logger.warning(f"Skipping malformed job record: {e}")
        return jobs

    def update_job_status(self, auto_id: int, job_status: int, notes: str) -> bool:
        """
        Report a job's status to the queue.

        Args:
            auto_id: Job identifier
            job_status: New status code
            notes: Free-text outcome, stored as the job's external notes

        Returns:
            bool: True on any 2xx response, False otherwise
        """
        try:
            response = self.session.put(
                self.job_url,
                json={
                    'autoId': auto_id,
                    'jobStatus': job_status,
                    'externalNotes': notes,
                },
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Job status update failed: ID={auto_id}: {e}")
            return False

        if not response.ok:
            logger.error(f"Job status update failed: ID={auto_id}, HTTP {response.status_code}")
            return False

        logger.info(f"Job status updated: ID={auto_id}, Status={job_status}")
        return True

    def update_base_url(self, base_url: str):
        if not base_url:
            raise JobAPIError("Job queue base URL is required")
        self.base_url = base_url.rstrip('/')
        self.job_url = f'{self.base_url}/templateJob'
        logger.info(f"Job queue URL updated: {self.job_url}")

    def test_connection(self) -> bool:
        """
        Test the connection to the job queue.

        Returns:
            bool: True if the queue answered with a 2xx response
        """
        try:
            response = self.session.get(
                self.job_url,
                params={'status': 0, 'limit': 1},
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Job queue connection test failed with exception: {e}")
            return False

        if response.ok:
            logger.info("Job queue connection test successful")
            return True
        logger.error(f"Job queue connection test failed: {response.status_code}")
        return False

    def close(self):
        """Close the HTTP session."""
        if self.session:
            self.session.close()
            logger.info("Job queue client session closed")
