"""Catalog sync CLI — ``registry-sync-forms``.

Connects to the database and makes the stored forms match the definitions
under the catalog directory: new forms are created at version 1, changed
forms get a new version, identical forms are left alone.  Intended for
deploy hooks and one-off maintenance.

Examples::

    # Sync forms/ at the repo root
    uv run registry-sync-forms

    # Sync a different catalog directory
    uv run registry-sync-forms --forms-dir /etc/registry/forms

    # Validate the catalog without touching the database
    uv run registry-sync-forms --check
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

from registry_forms.catalog import FormCatalogStore, SyncResult

logger = logging.getLogger(__name__)


async def run_sync(*, forms_dir: str | None = None) -> list[SyncResult]:
    """Load the catalog, sync it, and commit.

    Creates its own database session.  Safe to call from a CLI entry point
    or a scheduled task.
    """
    # Lazy imports to avoid loading DB machinery at module import time
    from registry_db.engine import dispose_engine, session_scope
    from registry_forms.catalog import sync_catalog

    store = FormCatalogStore(forms_dir=forms_dir)
    store.load()

    try:
        async with session_scope() as db:
            return await sync_catalog(db, store)
    finally:
        await dispose_engine()


def cli() -> None:
    """Console-script entry point: ``registry-sync-forms``."""
    parser = argparse.ArgumentParser(
        prog="registry-sync-forms",
        description="Create or revise registry forms from the on-disk catalog.",
    )
    parser.add_argument(
        "--forms-dir",
        default=os.getenv("SERVER_FORMS_DIR") or None,
        help="Catalog directory containing manifest.yaml (default: forms/ at repo root)",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        default=False,
        help="Only load and validate the catalog; do not connect to the database",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if args.check:
        store = FormCatalogStore(forms_dir=args.forms_dir)
        store.load()
        print(f"Catalog OK: {len(store)} form(s)")
        sys.exit(0)

    results = asyncio.run(run_sync(forms_dir=args.forms_dir))
    for r in results:
        version = f"v{r.version}" if r.version is not None else "-"
        print(f"{r.action:<10} {r.external_study_id}/{r.name} {version}")
    sys.exit(0)
