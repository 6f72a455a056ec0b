"""In-process APM agent: transactions, segments, custom events and metrics."""

from apm_demo.agent.application import VERSION, AgentConfig, Application
from apm_demo.agent.browser import BrowserTimingHeader, browser_timing_header
from apm_demo.agent.context import attach, current_transaction, get_transaction
from apm_demo.agent.errors import ConfigurationError
from apm_demo.agent.records import CustomEvent, ErrorRecord, SegmentRecord, TransactionRecord
from apm_demo.agent.segments import (
    DestinationType,
    ExternalSegment,
    MessageProducerSegment,
    Segment,
    start_external_segment,
    start_message_segment,
    start_segment,
)
from apm_demo.agent.sinks import InMemorySink, LoggingSink, ReportingSink
from apm_demo.agent.transaction import NoticedError, Transaction, add_attribute, ignore, notice_error, set_name

__all__ = [
    "VERSION",
    "AgentConfig",
    "Application",
    "BrowserTimingHeader",
    "ConfigurationError",
    "CustomEvent",
    "DestinationType",
    "ErrorRecord",
    "ExternalSegment",
    "InMemorySink",
    "LoggingSink",
    "MessageProducerSegment",
    "NoticedError",
    "ReportingSink",
    "Segment",
    "SegmentRecord",
    "Transaction",
    "TransactionRecord",
    "add_attribute",
    "attach",
    "browser_timing_header",
    "current_transaction",
    "get_transaction",
    "ignore",
    "notice_error",
    "set_name",
    "start_external_segment",
    "start_message_segment",
    "start_segment",
]
