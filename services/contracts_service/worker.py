"""ARQ worker for contracts service background tasks.

Schedules periodic tasks via ARQ cron jobs backed by Redis.
Run with: arq services.contracts_service.worker.WorkerSettings
"""

from arq import cron
from libs.common.arq_config import get_redis_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)


# ── Wrapper functions (ARQ requires top-level async callables) ──


async def task_transition_contract_statuses(ctx: dict):
    """Expire contracts past their end date and flag those about to expire."""
    from services.contracts_service.tasks import run_contract_expiry_sweep

    logger.info("Running: transition_contract_statuses")
    await run_contract_expiry_sweep()


# ── Worker configuration ──


class WorkerSettings:
    """ARQ worker settings with cron job schedules."""

    redis_settings = get_redis_settings()

    functions = [task_transition_contract_statuses]

    cron_jobs = [
        # Hourly
        cron(
            task_transition_contract_statuses,
            minute=5,
            run_at_startup=True,
        ),
    ]
