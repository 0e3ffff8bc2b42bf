"""
Sink Module - Black Box Interface

Purpose: Persist captured command output (e.g. job logs) to named files
Interface: ResultSink.write(), job_output_name()
Hidden: File layout, blocking I/O off the event loop

One plain-text file per name, overwritten on each run.
"""

from .sink import ResultSink, job_output_name

__all__ = ["ResultSink", "job_output_name"]
