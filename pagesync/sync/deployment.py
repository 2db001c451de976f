"""Deployment removal."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


def remove_deployment(dest: str | Path, root: str | Path | None = None) -> bool:
    """Recursively delete a deployment directory.

    A missing directory counts as success. Other filesystem errors are
    logged and reported as ``False``. When ``root`` is given, the owner
    directory between ``root`` and ``dest`` is removed too once empty.
    """
    dest = Path(dest)
    try:
        shutil.rmtree(dest)
    except FileNotFoundError:
        pass
    except NotADirectoryError:
        # A stray file where a deployment should be
        try:
            dest.unlink()
        except OSError as e:
            logger.error("Error removing site %s: %s", dest, e)
            return False
    except OSError as e:
        logger.error("Error removing site %s: %s", dest, e)
        return False

    if root is not None:
        owner_dir = dest.parent
        if owner_dir != Path(root):
            try:
                owner_dir.rmdir()
            except OSError:
                pass  # Not empty, or already gone
    return True
