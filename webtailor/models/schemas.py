"""
Data models for plans, outcomes, rules and page snapshots.
"""

import time
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Plans
# ============================================================================

class Action(BaseModel):
    """One tool invocation with concrete parameters."""
    model_config = ConfigDict(frozen=True)

    tool: str = Field(..., description="Registered tool name")
    parameters: Dict[str, Any] = Field(default_factory=dict)
    reasoning: Optional[str] = Field(None, description="Why the planner chose this step")


class ExecutionPlan(BaseModel):
    """Ordered list of actions plus the planner's free-text reasoning."""
    reasoning: str = ""
    actions: List[Action] = Field(default_factory=list)


class ActionOutcome(BaseModel):
    """Settled result of one executed action, aligned by index with its plan."""
    tool: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    success: bool
    result: Optional[Any] = None
    error: Optional[str] = None

    @property
    def css_text(self) -> Optional[str]:
        """Static stylesheet produced by the action, if any."""
        if self.success and isinstance(self.result, dict):
            css = self.result.get("css")
            if isinstance(css, str):
                return css
        return None


# ============================================================================
# Rules
# ============================================================================

class Rule(BaseModel):
    """
    A persisted customization: the command, its replayable storage plan and
    the outcomes of the session that created it. Never edited after creation.
    """
    model_config = ConfigDict(frozen=True)

    command: str
    execution_plan: ExecutionPlan
    results: List[ActionOutcome] = Field(default_factory=list)
    timestamp: float = Field(default_factory=time.time, description="Creation time, epoch seconds")


# ============================================================================
# Page context snapshot
# ============================================================================

class Headline(BaseModel):
    text: str
    selector: str
    tag: str


class Paragraph(BaseModel):
    text: str
    selector: str
    word_count: int


class LinkInfo(BaseModel):
    text: str
    href: str
    selector: str


class ImageInfo(BaseModel):
    src: str
    alt: str = ""
    selector: str


class PageContent(BaseModel):
    headlines: List[Headline] = Field(default_factory=list)
    paragraphs: List[Paragraph] = Field(default_factory=list)
    links: List[LinkInfo] = Field(default_factory=list)
    images: List[ImageInfo] = Field(default_factory=list)


class PageStructure(BaseModel):
    has_navigation: bool = False
    has_sidebar: bool = False
    has_footer: bool = False
    has_comments: bool = False
    main_content_selector: str = "body"
    ad_element_count: int = 0
    form_count: int = 0


class PageContextSnapshot(BaseModel):
    """Descriptive snapshot of the page handed to planning and generative tools."""
    url: str
    domain: str
    title: str = ""
    content: PageContent = Field(default_factory=PageContent)
    structure: PageStructure = Field(default_factory=PageStructure)
    theme: str = "unknown (defaulting to light assumption)"
    existing_customizations: List[str] = Field(default_factory=list)


# ============================================================================
# Command surface results
# ============================================================================

class CommandResult(BaseModel):
    """Result of executeNaturalLanguageCommand: the plan that ran and its outcomes."""
    execution_plan: ExecutionPlan
    results: List[ActionOutcome] = Field(default_factory=list)
    message: Optional[str] = None
    persisted: bool = False


class HostResponse(BaseModel):
    """Envelope returned to the host for every command-surface call."""
    success: bool
    result: Optional[Any] = None
    error: Optional[str] = None
