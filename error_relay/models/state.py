"""Per unit-of-work reporter state"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .report import UserContext


@dataclass
class ReporterState:
    """
    Context accumulated while handling one request or job

    Merged into every report built in the same unit of work. One instance per
    unit of work; never shared between concurrent ones.
    """
    context: Dict[str, Any] = field(default_factory=dict)
    user: Optional[UserContext] = None

    def merge_context(self, values: Dict[str, Any]) -> None:
        self.context.update(values)

    def merged_with(self, extra_context: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Accumulated context overlaid with per-call values (per-call wins)"""
        return {**self.context, **(extra_context or {})}
