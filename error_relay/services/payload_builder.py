"""Error report assembly"""

import logging
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..models.report import ErrorReport, ErrorDetails, RequestContext, RequestSnapshot, utc_now
from ..models.state import ReporterState
from ..utils.config import AppConfig
from .environment import get_app_context, get_git_info
from .fingerprint import error_class_name, error_code, error_origin, extract_frames, generate_hash
from .redactor import sanitize_headers, sanitize_map
from .source_reader import SourceContextReader

logger = logging.getLogger(__name__)


class PayloadBuilder:
    """
    Composes the ErrorReport for an accepted error

    Pulls together the fingerprint, stack frames, source context, sanitized
    request data, user, app and git information and the merged custom
    context.
    """

    def __init__(
        self,
        config: AppConfig,
        source_reader: Optional[SourceContextReader] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize payload builder

        Args:
            config: Application configuration
            source_reader: Reader for source context (built from config if omitted)
            clock: Timestamp source (default: current UTC time)
        """
        self.config = config
        self.source_reader = source_reader or SourceContextReader(
            project_root=config.source.project_root,
            context_lines=config.source.context_lines,
        )
        self.clock = clock or utc_now

    @property
    def project_root(self) -> Path:
        return self.source_reader.project_root

    def should_autofix(self) -> bool:
        return self.config.environment in self.config.autofix_environments

    def build(
        self,
        error: BaseException,
        state: Optional[ReporterState] = None,
        extra_context: Optional[Dict[str, Any]] = None,
        request: Optional[RequestSnapshot] = None,
        error_hash: Optional[str] = None,
        capture_stack: Optional[List[traceback.FrameSummary]] = None,
    ) -> ErrorReport:
        """
        Build the report for an error

        Args:
            error: The error being reported
            state: Accumulated context and user of the current unit of work
            extra_context: Per-call context; wins over accumulated keys
            request: Request being handled, if any
            error_hash: Precomputed fingerprint
            capture_stack: Call stack at the capture site, when built off that stack

        Returns:
            Immutable ErrorReport
        """
        state = state or ReporterState()
        file, line = error_origin(error)

        source = None
        if self.config.source.include_contents:
            source = self.source_reader.get_source_context(
                file, line, error, capture_stack=capture_stack
            )

        user = state.user
        if user is None and request is not None:
            user = request.user

        return ErrorReport(
            error_hash=error_hash or generate_hash(error),
            project=self.config.project,
            environment=self.config.environment,
            should_autofix=self.should_autofix(),
            timestamp=self.clock(),
            error=ErrorDetails(
                class_name=error_class_name(error),
                message=str(error),
                code=error_code(error),
                file=file,
                line=line,
                trace=extract_frames(error),
            ),
            source=source,
            request=self.request_context(request) if request is not None else None,
            user=user,
            app=get_app_context(),
            context=state.merged_with(extra_context),
            git=get_git_info(self.project_root),
        )

    def request_context(self, request: RequestSnapshot) -> RequestContext:
        """Sanitize a request snapshot for the payload"""
        return RequestContext(
            url=request.url,
            method=request.method,
            input=sanitize_map(request.input, self.config.privacy.sensitive_fields),
            headers=sanitize_headers(request.headers),
            ip=request.ip,
            user_agent=request.user_agent,
        )
