"""Reference build and report strategies."""

from arbor.strategies.console_reporter import ConsoleReportStrategy
from arbor.strategies.http_reporter import HttpReportStrategy
from arbor.strategies.json_builder import JsonBuildStrategy, build_from_data
from arbor.strategies.recording_reporter import RecordedEvent, RecordingReportStrategy

__all__ = [
    "ConsoleReportStrategy",
    "HttpReportStrategy",
    "JsonBuildStrategy",
    "RecordedEvent",
    "RecordingReportStrategy",
    "build_from_data",
]
