"""Periodic Drive crawl: imports new recordings for every radio with a folder."""
import asyncio
import time
import traceback
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from radiocheck.core.config import get_settings
from radiocheck.db.session import SessionLocal
from radiocheck.models import Radio
from radiocheck.services.drive import DriveClient
from radiocheck.services.folder_crawler import sync_radio, sync_radios_from_root

logger = structlog.get_logger()
settings = get_settings()


async def crawl_once(db: Session, drive: DriveClient, root_folder_id: Optional[str] = None) -> int:
    """One pass over all radios. Returns how many rows were imported."""
    if root_folder_id:
        result = await sync_radios_from_root(db, drive, root_folder_id)
        return result.synced_audios

    synced = 0
    radios = list(db.scalars(select(Radio).where(Radio.drive_folder_id.is_not(None))))
    for radio in radios:
        result = await sync_radio(db, drive, radio)
        synced += result.synced
    return synced


async def _tick() -> int:
    db = SessionLocal()
    drive = DriveClient.from_settings()
    try:
        return await crawl_once(db, drive, settings.drive_root_folder_id)
    finally:
        await drive.aclose()
        db.close()


def main_loop():
    logger.info("worker.start", msg="crawl loop started", interval=settings.sync_interval_seconds)
    idle_ticks = 0
    while True:
        try:
            synced = asyncio.run(_tick())
            if synced:
                idle_ticks = 0
                logger.info("worker.synced", synced=synced)
            else:
                idle_ticks += 1
                if idle_ticks % 20 == 0:
                    logger.info("worker.idle", msg="no new recordings found")
        except Exception as e:
            logger.error("worker.crawl_error", error=str(e), traceback=traceback.format_exc())
        time.sleep(settings.sync_interval_seconds)


if __name__ == "__main__":
    main_loop()
