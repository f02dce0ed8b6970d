"""ARQ worker for document processing, chunking and embedding.

Run with ``arq agentrag.workers.main.WorkerSettings``.
"""

import logging

from arq.connections import RedisSettings

from agentrag.core.config import get_settings
from agentrag.workers.ingest import MAX_TRIES, chunk_document, embed_document, process_document

logger = logging.getLogger(__name__)


def redis_settings_from_env() -> RedisSettings:
    return RedisSettings.from_dsn(get_settings().redis_url)


async def startup(ctx: dict) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    from agentrag.core.database import init_db

    await init_db()
    logger.info("Worker ready")


class WorkerSettings:
    functions = [process_document, chunk_document, embed_document]
    on_startup = startup
    redis_settings = redis_settings_from_env()
    max_jobs = 10
    max_tries = MAX_TRIES
    job_timeout = 600  # OCR on large scans is slow


if __name__ == "__main__":
    from arq import run_worker

    run_worker(WorkerSettings)  # type: ignore[arg-type]
