"""
Unit tests for the job queue API client.
Tests job fetching, status updates and error handling.
"""
import pytest
import requests
from unittest.mock import Mock, patch

from job_printer_service.job_client import JobClient, JobAPIError
from job_printer_service.models import JobStatus

BASE_URL = 'http://queue.local/api/printer'


def make_response(status_code=200, payload=None, json_error=None):
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.reason = 'OK' if response.ok else 'Error'
    response.text = ''
    if json_error:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


class TestJobClient:
    """Test cases for the JobClient class."""

    def test_init(self):
        client = JobClient(BASE_URL + '/', timeout=5, fetch_limit=3)

        assert client.job_url == BASE_URL + '/templateJob'
        assert client.session.headers['Content-Type'] == 'application/json'

    def test_init_without_url(self):
        with pytest.raises(JobAPIError):
            JobClient('')

    @patch('requests.Session.get')
    def test_fetch_pending_jobs(self, mock_get):
        mock_get.return_value = make_response(payload={
            'success': True,
            'data': [
                {'AutoID': 5, 'PrinterName': 'Adisyon', 'AltPrinterName': '10.0.0.2:9101',
                 'Content': '<div class="title">T</div>', 'JobStatus': 0},
                {'AutoID': 6, 'PrinterName': 'Mutfak', 'Content': '<p/>'},
            ]
        })
        client = JobClient(BASE_URL, timeout=5, fetch_limit=3)

        jobs = client.fetch_pending_jobs()

        assert [job.auto_id for job in jobs] == [5, 6]
        assert jobs[0].alt_printer_name == '10.0.0.2:9101'
        mock_get.assert_called_once_with(
            BASE_URL + '/templateJob', params={'status': 0, 'limit': 3}, timeout=5
        )

    @patch('requests.Session.get')
    def test_unsuccessful_payload_gives_no_jobs(self, mock_get):
        mock_get.return_value = make_response(payload={'success': False, 'message': 'busy'})

        assert JobClient(BASE_URL).fetch_pending_jobs() == []

    @patch('requests.Session.get')
    def test_malformed_records_are_skipped(self, mock_get):
        mock_get.return_value = make_response(payload={
            'success': True, 'data': [{'AutoID': 'abc'}, {'AutoID': '7'}]
        })

        jobs = JobClient(BASE_URL).fetch_pending_jobs()

        assert [job.auto_id for job in jobs] == [7]

    @patch('requests.Session.get')
    def test_http_error(self, mock_get):
        mock_get.return_value = make_response(status_code=500)

        with pytest.raises(JobAPIError):
            JobClient(BASE_URL).fetch_pending_jobs()

    @patch('requests.Session.get')
    def test_network_error(self, mock_get):
        mock_get.side_effect = requests.exceptions.ConnectionError("Network error")

        with pytest.raises(JobAPIError, match="Network error"):
            JobClient(BASE_URL).fetch_pending_jobs()

    @patch('requests.Session.get')
    def test_invalid_json(self, mock_get):
        mock_get.return_value = make_response(json_error=ValueError("Expecting value"))

        with pytest.raises(JobAPIError):
            JobClient(BASE_URL).fetch_pending_jobs()

    @patch('requests.Session.put')
    def test_update_job_status(self, mock_put):
        mock_put.return_value = make_response(status_code=204)
        client = JobClient(BASE_URL, timeout=5)

        assert client.update_job_status(5, JobStatus.COMPLETED, "Printed successfully") is True
        mock_put.assert_called_once_with(
            BASE_URL + '/templateJob',
            json={'autoId': 5, 'jobStatus': 2, 'externalNotes': "Printed successfully"},
            timeout=5
        )

    @patch('requests.Session.put')
    def test_update_job_status_failure(self, mock_put):
        mock_put.return_value = make_response(status_code=404)

        assert JobClient(BASE_URL).update_job_status(5, JobStatus.COMPLETED, "x") is False

    @patch('requests.Session.put')
    def test_update_job_status_network_error(self, mock_put):
        mock_put.side_effect = requests.exceptions.Timeout("timed out")

        assert JobClient(BASE_URL).update_job_status(5, JobStatus.COMPLETED, "x") is False

    @patch('requests.Session.get')
    def test_connection(self, mock_get):
        mock_get.return_value = make_response()
        client = JobClient(BASE_URL)

        assert client.test_connection() is True
        mock_get.side_effect = requests.exceptions.ConnectionError()
        assert client.test_connection() is False

    @patch('requests.Session.get')
    def test_update_base_url(self, mock_get):
        mock_get.return_value = make_response(payload={'success': True, 'data': []})
        client = JobClient(BASE_URL, timeout=5)

        client.update_base_url('http://other.local/api/')
        client.fetch_pending_jobs()

        assert client.job_url == 'http://other.local/api/templateJob'
        assert mock_get.call_args.args[0] == 'http://other.local/api/templateJob'
        with pytest.raises(JobAPIError):
            client.update_base_url('')
