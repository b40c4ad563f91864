from __future__ import annotations

import uuid


def new_id() -> str:
    return str(uuid.uuid4())


def correlation_id() -> str:
    """Opaque id attached to unexpected failures (log line + response)."""
    return uuid.uuid4().hex[:12]
