"""
Job Printer Service.
Polls a remote print job queue and delivers jobs to thermal and slip printers.
"""

__version__ = "1.0.0"
