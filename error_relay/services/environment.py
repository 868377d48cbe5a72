"""Git metadata and runtime environment lookups"""

import locale
import logging
import platform
from pathlib import Path
from typing import Optional

import fastapi

from ..models.report import AppContext, GitInfo

logger = logging.getLogger(__name__)


def get_git_info(project_root: Path) -> Optional[GitInfo]:
    """
    Read branch and commit from the project's .git directory

    Args:
        project_root: Directory containing .git

    Returns:
        GitInfo with an 8-character commit, or None when there is no checkout
    """
    git_dir = Path(project_root) / ".git"
    head = git_dir / "HEAD"
    if not head.is_file():
        return None

    try:
        head_contents = head.read_text().strip()
    except OSError as e:
        logger.debug(f"Could not read {head}: {e}")
        return None

    branch = None
    commit = None

    if head_contents.startswith("ref: "):
        ref = head_contents[5:]
        branch = ref.replace("refs/heads/", "", 1)
        commit = _resolve_ref(git_dir, ref)
    else:
        # Detached HEAD
        commit = head_contents

    return GitInfo(branch=branch, commit=commit[:8] if commit else None)


def _resolve_ref(git_dir: Path, ref: str) -> Optional[str]:
    """Look up a ref as a loose file, then in packed-refs"""
    ref_file = git_dir / ref
    try:
        if ref_file.is_file():
            return ref_file.read_text().strip() or None

        packed = git_dir / "packed-refs"
        if packed.is_file():
            for line in packed.read_text().splitlines():
                parts = line.strip().split(" ", 1)
                if len(parts) == 2 and parts[1] == ref:
                    return parts[0]
    except OSError as e:
        logger.debug(f"Could not resolve git ref {ref}: {e}")
    return None


def get_app_context() -> AppContext:
    """Describe the runtime the error happened in"""
    return AppContext(
        framework_version=f"fastapi {fastapi.__version__}",
        runtime_version=platform.python_version(),
        locale=locale.getlocale()[0],
    )
