"""Process and upstream memory figures for the status endpoints."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import psutil

from qudemo_jobs.services.processing_client import ProcessingClient

logger = logging.getLogger(__name__)

_MB = 1024 * 1024


def memory_usage() -> Dict[str, Any]:
    """Memory used by this process, in MB."""
    info = psutil.Process().memory_info()
    return {
        "rss_mb": round(info.rss / _MB),
        "vms_mb": round(info.vms / _MB),
        "system_percent": psutil.virtual_memory().percent,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def upstream_memory_status(client: Optional[ProcessingClient]) -> Dict[str, Any]:
    """Ask the processing service for its memory figure.

    Falls back to this process's RSS when the service can't be reached.
    The result always has a ``memory_mb`` key.
    """
    if client is not None:
        try:
            status = await client.memory_status()
            if "memory_mb" in status:
                return status
            logger.warning("Upstream memory status missing memory_mb: %s", status)
        except Exception as e:
            logger.warning("Could not check upstream memory status: %s", e)

    local = memory_usage()
    return {"memory_mb": local["rss_mb"], "status": "unknown", "source": "local"}
