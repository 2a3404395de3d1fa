"""
CLI entrypoint for the token blacklist cleanup job. Run from cron, e.g.:

  python -m wms_tutorial.token_cleanup

Or hourly: 0 * * * * cd /path/to/wms-tutorial && .venv/bin/python -m wms_tutorial.token_cleanup
"""

import logging
import sys

from wms_tutorial.core.config import get_settings
from wms_tutorial.core.database import ConnectionPool
from wms_tutorial.services.token_blacklist import purge_expired_tokens

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main(pool: ConnectionPool | None = None) -> int:
    """Delete blacklisted tokens whose natural expiry has passed."""
    pool = pool or ConnectionPool.from_settings(get_settings())
    try:
        db = pool.acquire().session()
        try:
            tokens_deleted = purge_expired_tokens(db)
            logger.info("Token cleanup completed: tokens_deleted=%s", tokens_deleted)
            return 0
        finally:
            db.close()
    except Exception as e:
        logger.exception("Token cleanup failed: %s", e)
        return 1
    finally:
        pool.close()


if __name__ == "__main__":
    sys.exit(main())
