"""
History log helpers for the orchestrator.

History entries written as a side effect of a workflow operation are best-effort:
the operation has already committed, so a failed append is logged and skipped.
"""

from typing import Any
from typing import Dict
from typing import Optional

import asyncpg
from loguru import logger

from ccas_api.workflow.db.repository_history import HistoryRepository
from ccas_api.workflow.enums import HistoryAction


async def record_history(
    history_repo: HistoryRepository,
    request_id: str,
    action: HistoryAction,
    user: str,
    metadata: Optional[Dict[str, Any]] = None,
) -> Optional[Dict[str, Any]]:
    """Append a history entry after a committed operation; returns None if the append failed."""
    try:
        return await history_repo.append(request_id, action, user, metadata)
    except (asyncpg.PostgresError, OSError) as e:
        logger.error(
            "History append failed",
            request_id=request_id,
            action=HistoryAction(action).value,
            error_type=type(e).__name__,
            error_message=str(e),
        )
        return None
