"""Report sinks for finished run reports."""

from perfgate.reporting.sinks import NullSink, ReportSink, StdoutSink, StoreSink, get_sink

__all__ = ["NullSink", "ReportSink", "StdoutSink", "StoreSink", "get_sink"]
