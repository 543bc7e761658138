"""ARQ worker for payments reconciliation."""

from arq import cron
from libs.common.arq_config import get_redis_settings
from libs.common.logging import configure_logging, get_logger
from libs.db.config import AsyncSessionLocal
from services.payments_service.stripe_client import get_stripe_client

logger = get_logger(__name__)


async def startup(ctx: dict):
    configure_logging()
    ctx["stripe"] = get_stripe_client()
    if ctx["stripe"] is None:
        logger.warning("STRIPE_SECRET_KEY not set; reconciliation jobs will idle")


async def task_reconcile_unsettled_sessions(ctx: dict):
    from services.payments_service.tasks import reconcile_unsettled_sessions

    logger.info("Running: reconcile_unsettled_sessions")
    async with AsyncSessionLocal() as db:
        await reconcile_unsettled_sessions(db, ctx.get("stripe"))


async def task_retry_missing_checkout_sessions(ctx: dict):
    from services.payments_service.tasks import retry_missing_checkout_sessions

    logger.info("Running: retry_missing_checkout_sessions")
    async with AsyncSessionLocal() as db:
        await retry_missing_checkout_sessions(db, ctx.get("stripe"))


async def task_reconcile_stuck_payouts(ctx: dict):
    from services.payments_service.tasks import reconcile_stuck_payouts

    logger.info("Running: reconcile_stuck_payouts")
    async with AsyncSessionLocal() as db:
        await reconcile_stuck_payouts(db, ctx.get("stripe"))


class WorkerSettings:
    redis_settings = get_redis_settings()

    on_startup = startup

    functions = [
        task_reconcile_unsettled_sessions,
        task_retry_missing_checkout_sessions,
        task_reconcile_stuck_payouts,
    ]

    cron_jobs = [
        cron(
            task_reconcile_unsettled_sessions,
            minute={0, 5, 10, 15, 20, 25, 30, 35, 40, 45, 50, 55},
            run_at_startup=True,
        ),
        cron(
            task_retry_missing_checkout_sessions,
            minute={1, 6, 11, 16, 21, 26, 31, 36, 41, 46, 51, 56},
            run_at_startup=True,
        ),
        cron(
            task_reconcile_stuck_payouts,
            minute={2, 12, 22, 32, 42, 52},
        ),
    ]
