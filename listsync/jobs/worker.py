# listsync/jobs/worker.py
# arq worker: housekeeping for the record store

from datetime import timedelta

from arq import cron
from arq.connections import RedisSettings
from opentelemetry import trace

from listsync.config import settings
from listsync.constants import PUBLIC_ZONE, SHARE_CODE_TYPE
from listsync.repositories.record_repository import RecordRepository
from listsync.utils.logger import log_info
from listsync.utils.telemetry import init_otel
from listsync.utils.timestamps import utcnow


async def purge_expired_share_codes(ctx, ttl_hours: int = None) -> dict:
    """Drop ShareCode records older than the TTL so codes can be reused."""
    r = ctx["redis"]
    repo = ctx.get("repository") or RecordRepository()
    hours = ttl_hours if ttl_hours is not None else settings.SHARE_CODE_TTL_HOURS
    cutoff = utcnow() - timedelta(hours=hours)

    tracer = trace.get_tracer("worker")
    with tracer.start_as_current_span("purge_expired_share_codes"):
        removed = await repo.purge_records(PUBLIC_ZONE, SHARE_CODE_TYPE, cutoff)

    await r.incrby("jobs:share_codes_purged", removed)
    log_info(f"Purged {removed} share codes older than {hours}h")
    return {"removed": removed, "cutoff": cutoff.isoformat()}


class WorkerSettings:
    functions = [purge_expired_share_codes]
    redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)
    cron_jobs = [
        cron(purge_expired_share_codes, minute={0}),
    ]

    @staticmethod
    async def startup(ctx):
        ctx["repository"] = RecordRepository()
        if settings.TELEMETRY_ENABLED:
            init_otel(service_name="listsync-worker")
