"""ID Generation - Prefixed identifiers for stored entities"""
import uuid
from datetime import datetime, timezone
from typing import Optional

# Prefix per entity kind; ids look like "INST-3f9a1c2b7d4e"
WORKFLOW_PREFIX = "WF"
WORKFLOW_VERSION_PREFIX = "WFV"
INSTANCE_PREFIX = "INST"
NOTIFICATION_PREFIX = "NTF"
CORRELATION_PREFIX = "COR"


def generate_id(prefix: Optional[str] = None) -> str:
    """
    Generate a unique ID with optional prefix

    Examples:
        >>> generate_id('INST')
        'INST-a1b2c3d4e5f6'
        >>> generate_id()
        'a1b2c3d4e5f6'
    """
    unique_part = uuid.uuid4().hex[:12]
    return f"{prefix}-{unique_part}" if prefix else unique_part


def generate_workflow_id() -> str:
    return generate_id(WORKFLOW_PREFIX)


def generate_workflow_version_id() -> str:
    return generate_id(WORKFLOW_VERSION_PREFIX)


def generate_instance_id() -> str:
    return generate_id(INSTANCE_PREFIX)


def generate_notification_id() -> str:
    return generate_id(NOTIFICATION_PREFIX)


def generate_correlation_id() -> str:
    """Correlation ID for request tracing: COR-<yyyymmddHHMMSS>-<8 hex>"""
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"{CORRELATION_PREFIX}-{timestamp}-{uuid.uuid4().hex[:8]}"
