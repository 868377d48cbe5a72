"""Error report payload models"""

from datetime import datetime, timezone
from typing import Optional, Any, Dict, List, Union
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic_core import to_jsonable_python

# Optional top-level sections that are left out of the wire payload when unset
OPTIONAL_SECTIONS = ("source", "request", "user", "git")


def utc_now() -> datetime:
    """Get current datetime in UTC"""
    return datetime.now(timezone.utc)


class _ReportPart(BaseModel):
    """Base for immutable payload parts"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class StackFrame(_ReportPart):
    """One call-stack frame"""
    file: Optional[str] = None
    line: Optional[int] = None
    class_name: Optional[str] = Field(default=None, alias="class")
    function: Optional[str] = None
    type: Optional[str] = None  # "instance", "class" or None for plain functions


class ErrorDetails(_ReportPart):
    """The error being reported"""
    class_name: str = Field(alias="class")
    message: str
    code: int = 0
    file: str
    line: int
    trace: List[StackFrame] = Field(default_factory=list, max_length=20)


class SourceContext(_ReportPart):
    """Source code surrounding the error"""
    file: str
    line: int
    context: Dict[int, str]
    full_contents: str
    related_files: Dict[str, str] = Field(default_factory=dict)


class RequestContext(_ReportPart):
    """Sanitized request information"""
    url: str
    method: str
    input: Dict[str, Any] = Field(default_factory=dict)
    headers: Dict[str, Any] = Field(default_factory=dict)
    ip: Optional[str] = None
    user_agent: Optional[str] = None


class UserContext(_ReportPart):
    """User affected by the error"""
    id: Optional[Union[int, str]] = None
    email: Optional[str] = None
    name: Optional[str] = None


class AppContext(_ReportPart):
    """Runtime environment description"""
    framework_version: Optional[str] = None
    runtime_version: str
    locale: Optional[str] = None


class GitInfo(_ReportPart):
    """Git checkout the application runs from"""
    branch: Optional[str] = None
    commit: Optional[str] = None


class ErrorReport(_ReportPart):
    """
    Diagnostic record delivered to the collector

    Built once per accepted capture and never modified afterwards.
    """
    error_hash: str = Field(pattern=r"^[0-9a-f]{32}$")
    project: str
    environment: str
    should_autofix: bool
    timestamp: datetime = Field(default_factory=utc_now)
    error: ErrorDetails
    source: Optional[SourceContext] = None
    request: Optional[RequestContext] = None
    user: Optional[UserContext] = None
    app: AppContext
    context: Dict[str, Any] = Field(default_factory=dict)
    git: Optional[GitInfo] = None

    @field_serializer("context")
    def serialize_context(self, context: Dict[str, Any]) -> Dict[str, Any]:
        """Custom context may hold arbitrary objects; unknown types fall back to repr()"""
        return to_jsonable_python(context, fallback=repr)

    def to_payload(self) -> dict:
        """Convert to the JSON body posted to the collector"""
        payload = self.model_dump(mode="json", by_alias=True)
        for section in OPTIONAL_SECTIONS:
            if payload.get(section) is None:
                payload.pop(section, None)
        return payload


class RequestSnapshot(BaseModel):
    """
    Raw view of the request being handled when the error happened

    Holds unsanitized data; the payload builder redacts it into a
    RequestContext.
    """
    url: str
    method: str = "GET"
    input: Dict[str, Any] = Field(default_factory=dict)
    headers: Dict[str, Any] = Field(default_factory=dict)
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    user: Optional[UserContext] = None  # authenticated user, if any
