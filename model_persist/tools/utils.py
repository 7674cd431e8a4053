"""
Utilities for generic tool-related functionality.
"""
from __future__ import annotations

import logging
from logging import Logger

import typer
from rich.console import Console

from ..store import BaseStore

__all__ = [
    "commit_changes",
]


def commit_changes(
    store: BaseStore,
    console: Console,
    *,
    dry_run: bool = False,
    yes: bool = False,
    logger: Logger | None = None,
) -> bool:
    """
    Print a summary of changes and handle flags. Changes which aren't
    committed are reverted.

    Returns whether changes were committed.
    """
    logger = logger or logging.getLogger("model-persist")

    if not store.has_changes:
        logger.info("No changes to commit")
        store.revert()
        return False

    dirty_summary = store.get_dirty_summary()
    overall_summary = store.get_summary()

    logger.info("Pending changes:")
    separator = "\n" if dirty_summary else ""
    console.print(f"{dirty_summary}{separator}Summary: {overall_summary}")

    if dry_run:
        store.revert()
        return False

    if not yes:
        if not typer.confirm("Proceed with committing changes?"):
            store.revert()
            return False

    # commit changes
    store.commit()

    logger.info("Committed changes")
    return True
