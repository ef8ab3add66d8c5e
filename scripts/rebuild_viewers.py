"""CLI for rebuilding the viewer index of a sharing store from its groups and connections"""

import argparse
import sys

from loguru import logger

from dropshare.config import settings
from dropshare.services.viewer_index import RebuildReport, ViewerIndex
from dropshare.stores.base import SharingStore
from dropshare.stores.local_store import LocalSharingStore
from dropshare.stores.sqlite_store import SqliteSharingStore


def open_store(backend: str, path: str) -> SharingStore:
    if backend == "sqlite":
        return SqliteSharingStore(
            path,
            busy_timeout_ms=settings.sqlite_busy_timeout_ms,
            pool_size=settings.sqlite_pool_size,
        )
    return LocalSharingStore(filepath=path)


def main(backend: str, store_path: str) -> RebuildReport:
    logger.configure(handlers=[{"sink": sys.stderr, "level": settings.log_level}])

    store = open_store(backend, store_path)
    viewer_index = ViewerIndex(store=store)
    report = viewer_index.rebuild()
    store.save()

    logger.info(f"Rebuilt viewer index in {store_path}: {report.model_dump()}")
    return report


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--backend",
        type=str,
        choices=["local", "sqlite"],
        default="local",
        help="Store implementation to open",
    )
    parser.add_argument(
        "--store",
        type=str,
        required=False,
        help="Store file (JSON for local, database for sqlite)",
        default=None,
    )

    args = parser.parse_args()
    default_path = (
        settings.sqlite_store_path if args.backend == "sqlite" else settings.local_store_path
    )

    main(backend=args.backend, store_path=args.store or default_path)
