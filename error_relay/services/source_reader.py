"""Source code context reader"""

import logging
import os
import traceback
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from ..models.report import SourceContext
from .fingerprint import traceback_entries

logger = logging.getLogger(__name__)

MAX_RELATED_FRAMES = 15
MAX_RELATED_FILES = 5

# Path components marking third-party code
THIRD_PARTY_DIRS = frozenset({"site-packages", "dist-packages", "vendor", ".venv", "venv", ".tox"})

PACKAGE_ROOT = Path(__file__).resolve().parent.parent


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8", errors="replace")


class SourceContextReader:
    """
    Loads the code around an error for the payload

    Reads the lines surrounding the failing line, the whole failing file, and
    up to five other project files seen in the call stack. Source text is sent
    as-is; it does not go through the redactor.
    """

    def __init__(self, project_root: Optional[str] = None, context_lines: int = 20):
        """
        Initialize source context reader

        Args:
            project_root: Only files under this directory count as project files
                          (default: current working directory)
            context_lines: Lines to include before and after the error line
        """
        self.project_root = Path(project_root or os.getcwd()).resolve()
        self.context_lines = context_lines

    def get_source_context(
        self,
        file: str,
        line: int,
        error: Optional[BaseException] = None,
        capture_stack: Optional[List[traceback.FrameSummary]] = None,
    ) -> Optional[SourceContext]:
        """
        Build the source section for an error

        Args:
            file: File the error originated in
            line: 1-based line number of the error
            error: The error, whose traceback supplies related files
            capture_stack: Stack of the capturing call (default: the current stack)

        Returns:
            SourceContext, or None if the file is missing or unreadable
        """
        path = Path(file) if file else None
        if path is None or not path.is_file() or not os.access(path, os.R_OK):
            return None

        try:
            contents = _read_text(path)
        except OSError as e:
            logger.debug(f"Could not read source file {file}: {e}")
            return None

        return SourceContext(
            file=file,
            line=line,
            context=self.context_window(contents.splitlines(), line),
            full_contents=contents,
            related_files=self.related_files(error, capture_stack),
        )

    def context_window(self, lines: List[str], line: int) -> Dict[int, str]:
        """
        Lines [line - N - 1, line + N) clamped to the file, keyed by 1-based number
        """
        start = max(0, line - self.context_lines - 1)
        end = min(len(lines), line + self.context_lines)
        return {i + 1: lines[i].rstrip() for i in range(start, end)}

    def related_files(
        self,
        error: Optional[BaseException] = None,
        capture_stack: Optional[List[traceback.FrameSummary]] = None,
    ) -> Dict[str, str]:
        """
        Contents of project files found in the call stack

        Walks at most 15 frames, most recent first, and stops once 5 distinct
        files have been collected. Unreadable files are skipped.

        Returns:
            Mapping of path relative to the project root to file contents
        """
        files: Dict[str, str] = {}

        for index, filename in enumerate(self._stack_files(error, capture_stack)):
            if index >= MAX_RELATED_FRAMES or len(files) >= MAX_RELATED_FILES:
                break

            path = self._project_path(filename)
            if path is None:
                continue

            relative = path.relative_to(self.project_root).as_posix()
            if relative in files:
                continue

            try:
                files[relative] = _read_text(path)
            except OSError as e:
                logger.debug(f"Skipping related file {relative}: {e}")

        return files

    def _stack_files(
        self,
        error: Optional[BaseException],
        capture_stack: Optional[List[traceback.FrameSummary]] = None,
    ) -> Iterator[str]:
        """Filenames of the error's traceback, then of the capturing call stack"""
        if error is not None:
            for frame, _ in traceback_entries(error):
                yield frame.f_code.co_filename

        if capture_stack is None:
            capture_stack = traceback.extract_stack()
        for summary in reversed(capture_stack):
            yield summary.filename

    def _project_path(self, filename: str) -> Optional[Path]:
        """Resolved path if filename is a readable project file, else None"""
        if not filename or filename.startswith("<"):
            return None

        path = Path(filename).resolve()

        if THIRD_PARTY_DIRS.intersection(path.parts):
            return None
        if not path.is_relative_to(self.project_root):
            return None
        if path.is_relative_to(PACKAGE_ROOT):
            return None
        if not path.is_file():
            return None

        return path
