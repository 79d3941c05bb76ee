import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from supabase import Client

from narra.config.settings import settings
from narra.database.supabase_client import SupabaseClient
from narra.modules.discovery.scrape_creators import ScrapeCreatorsClient, get_scrape_client
from narra.modules.profiles.refresh import ProfileRefreshService
from narra.modules.profiles.service import RefreshJobService

logger = logging.getLogger(__name__)


def run_refresh_job(
    job_id: str,
    supabase: Optional[Client] = None,
    client: Optional[ScrapeCreatorsClient] = None
) -> Optional[str]:
    """
    Background refresh worker.
    Runs after the response is sent; records the outcome on the refresh_jobs row.
    Uses service-role Supabase client when available so writes succeed (RLS bypass).
    Returns the final job status.
    """
    supabase = supabase or SupabaseClient.get_service_client()
    jobs = RefreshJobService(supabase)

    job = jobs.find_job(job_id)
    if not job:
        logger.error(f"Refresh job {job_id} not found")
        return None
    if job["status"] == "succeeded":
        return "succeeded"

    attempts = (job.get("attempts") or 0) + 1
    try:
        jobs.update_job(job_id, {"status": "running", "attempts": attempts})
        refresher = ProfileRefreshService(supabase, client or get_scrape_client())
        result = refresher.refresh(job["user_id"], job["profile_id"])
        status = "succeeded" if result.success else "failed"
        jobs.update_job(job_id, {
            "status": status,
            "new_posts": result.new_posts,
            "errors": result.errors,
            "message": result.message,
            "last_error": None if result.success else result.message,
        })
        logger.info(f"Refresh job {job_id} {status} (attempt {attempts}): {result.message}")
        return status
    except Exception as e:
        logger.error(f"Refresh job {job_id} crashed: {str(e)}")
        try:
            jobs.update_job(job_id, {"status": "failed", "last_error": str(e)})
        except Exception as update_error:
            logger.error(f"Could not mark refresh job {job_id} failed: {update_error}")
        return "failed"


def _parse_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _is_stale(job, stale_before: datetime) -> bool:
    """Queued jobs that never started and running jobs whose worker died stop advancing their timestamps"""
    if job["status"] == "failed":
        return True
    field = "updated_at" if job["status"] == "running" else "created_at"
    touched = _parse_timestamp(job.get(field) or job.get("created_at"))
    return touched is None or touched <= stale_before


def retry_failed_refresh_jobs(supabase: Optional[Client] = None, now: Optional[datetime] = None) -> int:
    """Re-run failed, stale queued and abandoned running jobs, while attempts remain."""
    supabase = supabase or SupabaseClient.get_service_client()
    now = now or datetime.now(timezone.utc)
    stale_before = now - timedelta(seconds=settings.refresh_retry_interval_seconds)
    jobs = RefreshJobService(supabase).list_retryable_jobs(settings.refresh_max_attempts)

    retried = 0
    for job in jobs:
        if not _is_stale(job, stale_before):
            continue
        logger.info(f"Retrying {job['status']} refresh job {job['id']} (attempts so far: {job.get('attempts') or 0})")
        run_refresh_job(job["id"], supabase=supabase)
        retried += 1
    if not retried:
        logger.debug("No refresh jobs to retry")
    return retried


async def refresh_scheduler_loop():
    """Background task that periodically retries failed profile refreshes"""
    while True:
        try:
            await asyncio.to_thread(retry_failed_refresh_jobs)
        except Exception as e:
            logger.error(f"Error in refresh scheduler loop: {str(e)}")

        await asyncio.sleep(settings.refresh_retry_interval_seconds)
