"""Pydantic Schema"""

from taskhub.schemas.tasks import (
    ClientVersion,
    CurrentEvent,
    RunRecordResponse,
    TaskAssignment,
    TaskCount,
    TaskRequest,
    TaskStatsResponse,
    Throughput,
    TriggerResponse,
)

__all__ = [
    "ClientVersion",
    "CurrentEvent",
    "RunRecordResponse",
    "TaskAssignment",
    "TaskCount",
    "TaskRequest",
    "TaskStatsResponse",
    "Throughput",
    "TriggerResponse",
]
