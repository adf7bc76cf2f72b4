"""Models package."""
from .schemas import (
    Action,
    ExecutionPlan,
    ActionOutcome,
    Rule,
    PageContextSnapshot,
    PageContent,
    PageStructure,
    Headline,
    Paragraph,
    LinkInfo,
    ImageInfo,
    CommandResult,
    HostResponse,
)

__all__ = [
    "Action",
    "ExecutionPlan",
    "ActionOutcome",
    "Rule",
    "PageContextSnapshot",
    "PageContent",
    "PageStructure",
    "Headline",
    "Paragraph",
    "LinkInfo",
    "ImageInfo",
    "CommandResult",
    "HostResponse",
]
