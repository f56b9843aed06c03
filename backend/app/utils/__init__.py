"""Shared helpers: logging, id generation, UTC time"""
from .logger import get_logger, setup_logging, get_correlation_id, set_correlation_id
from .idgen import (
    generate_id, generate_correlation_id, generate_instance_id,
    generate_notification_id, generate_workflow_id, generate_workflow_version_id
)
from .time import utc_now, format_iso, parse_iso

__all__ = [
    "get_logger",
    "setup_logging",
    "get_correlation_id",
    "set_correlation_id",
    "generate_id",
    "generate_correlation_id",
    "generate_instance_id",
    "generate_notification_id",
    "generate_workflow_id",
    "generate_workflow_version_id",
    "utc_now",
    "format_iso",
    "parse_iso",
]
