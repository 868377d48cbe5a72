"""Error fingerprinting and traceback inspection"""

import hashlib
from types import TracebackType
from typing import List, Optional, Tuple

from ..models.report import StackFrame

MAX_TRACE_FRAMES = 20


def error_class_name(error: BaseException) -> str:
    """
    Name of the error's type, module-qualified unless it is a builtin

    Returns:
        e.g. "ZeroDivisionError" or "myapp.billing.PaymentError"
    """
    cls = type(error)
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def error_code(error: BaseException) -> int:
    """Numeric code carried by the error (code or errno attribute), else 0"""
    for attr in ("code", "errno"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return 0


def _innermost(tb: Optional[TracebackType]) -> Optional[TracebackType]:
    while tb is not None and tb.tb_next is not None:
        tb = tb.tb_next
    return tb


def error_origin(error: BaseException) -> Tuple[str, int]:
    """
    File and line where the error was raised

    Returns:
        (file, line); ("", 0) for an exception that was never raised
    """
    tb = _innermost(error.__traceback__)
    if tb is None:
        return "", 0
    return tb.tb_frame.f_code.co_filename, tb.tb_lineno


def generate_hash(error: BaseException) -> str:
    """
    Stable identity of "this error at this call site"

    Same type, message, file and line always give the same hash.

    Returns:
        32-character lowercase hex digest
    """
    file, line = error_origin(error)
    fingerprint = "|".join([error_class_name(error), str(error), file, str(line)])
    return hashlib.md5(fingerprint.encode("utf-8")).hexdigest()


def traceback_entries(error: BaseException) -> List[Tuple[object, int]]:
    """(frame, line) pairs from the error's traceback, most recent first"""
    entries = []
    tb = error.__traceback__
    while tb is not None:
        entries.append((tb.tb_frame, tb.tb_lineno))
        tb = tb.tb_next
    entries.reverse()
    return entries


def _describe_frame(frame, line: int) -> StackFrame:
    f_locals = frame.f_locals
    class_name = None
    call_type = None

    if "self" in f_locals:
        class_name = type(f_locals["self"]).__qualname__
        call_type = "instance"
    elif isinstance(f_locals.get("cls"), type):
        class_name = f_locals["cls"].__qualname__
        call_type = "class"

    return StackFrame(
        file=frame.f_code.co_filename,
        line=line,
        class_name=class_name,
        function=frame.f_code.co_name,
        type=call_type,
    )


def extract_frames(error: BaseException, limit: int = MAX_TRACE_FRAMES) -> List[StackFrame]:
    """
    Stack frames of the error's traceback for the payload

    Args:
        error: Raised exception
        limit: Maximum number of frames (default 20)

    Returns:
        Frames, most recent call first
    """
    return [_describe_frame(frame, line) for frame, line in traceback_entries(error)[:limit]]
