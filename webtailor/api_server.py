"""
FastAPI server for webtailor.

Exposes the customization core of the currently open page to a host
application:
  - page lifecycle (open a URL in the managed browser, or load offline HTML)
  - the four core operations: execute a tool, run a natural-language
    command, reapply stored rules, reset
  - prompt composition with the stored global prompt
  - stored rules and settings (API key, global prompt)

Every core call answers ``{"success": true, "result": ...}`` or
``{"success": false, "error": ...}``.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

from .agent import CustomizationAgent
from .browser_controller import BrowserController
from .config import settings
from .document import SoupDocument
from .errors import WebTailorError
from .llm_client import LLMClient
from .models.schemas import HostResponse
from .rule_store import JsonFileStore, RuleStore, SettingsStore
from .utils.logger import get_logger


logger = get_logger(__name__)


# ============================================================================
# Pydantic Request/Response Models
# ============================================================================

class OpenPageRequest(BaseModel):
    """Open a page to customize."""
    url: str = Field(..., min_length=1, description="Page URL")
    html: Optional[str] = Field(None, description="Offline HTML; skips the browser when given")


class ToolRequest(BaseModel):
    """Direct tool invocation."""
    tool: str = Field(..., min_length=1)
    parameters: Dict[str, Any] = Field(default_factory=dict)


class CommandRequest(BaseModel):
    """Natural-language customization command."""
    command: str = Field(..., min_length=1)


class CustomizeRequest(BaseModel):
    """Local prompt combined with the stored global prompt."""
    prompt: Optional[str] = None


class SettingsUpdate(BaseModel):
    """Stored settings; omitted fields are left unchanged."""
    api_key: Optional[str] = None
    global_prompt: Optional[str] = None


class SettingsResponse(BaseModel):
    api_key_set: bool
    global_prompt: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    model: str
    api_key_configured: bool
    browser_ready: bool
    page_url: Optional[str]
    agent_state: Optional[str]
    timestamp: str


# ============================================================================
# FastAPI Application Setup
# ============================================================================

app = FastAPI(
    title="webtailor - Page Customization API",
    description="Natural-language page customization with per-origin rule caching and replay",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Add CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Global Exception Handler
# ============================================================================

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler for unhandled errors.

    Returns structured JSON error response.
    """
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": str(exc),
            "path": str(request.url),
            "timestamp": datetime.utcnow().isoformat() + "Z",
        },
    )


# ============================================================================
# Initialization
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize all components on server startup."""
    logger.info("=" * 70)
    logger.info("WEBTAILOR SERVER STARTUP")
    logger.info("=" * 70)

    backend = JsonFileStore(settings.RULES_PATH)
    app.state.rule_store = RuleStore(backend)
    app.state.settings_store = SettingsStore(backend)
    logger.info(f"[1/3] Rule storage at {settings.RULES_PATH}")

    llm = LLMClient()
    if not llm.configured:
        stored_key = await app.state.settings_store.api_key()
        if stored_key:
            llm.set_api_key(stored_key)
    app.state.llm = llm
    logger.info(f"[2/3] Generation client ready (model={llm.model}, key={'set' if llm.configured else 'missing'})")

    app.state.browser_controller = BrowserController()
    app.state.agent = None
    logger.info("[3/3] Browser controller initialized (lazy start)")

    logger.info("[OK] SERVER STARTUP COMPLETE")


@app.on_event("shutdown")
async def shutdown_event():
    """Clean up on server shutdown."""
    logger.info("Server shutting down...")

    agent = getattr(app.state, "agent", None)
    if agent is not None:
        await agent.close()

    browser = getattr(app.state, "browser_controller", None)
    if browser is not None:
        await browser.stop()

    logger.info("Server shutdown complete")


# ============================================================================
# Helper Functions
# ============================================================================

def _current_agent() -> CustomizationAgent:
    agent = getattr(app.state, "agent", None)
    if agent is None:
        raise HTTPException(status_code=409, detail="No page is open. POST /page/open first.")
    return agent


def _dump(value: Any) -> Any:
    return value.model_dump(mode="json") if isinstance(value, BaseModel) else value


# ============================================================================
# Health & Status Endpoints
# ============================================================================

@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    agent = getattr(app.state, "agent", None)
    llm = app.state.llm
    return HealthResponse(
        status="healthy" if llm.configured else "degraded",
        model=llm.model,
        api_key_configured=llm.configured,
        browser_ready=app.state.browser_controller.running,
        page_url=agent.document.url if agent else None,
        agent_state=agent.state.value if agent else None,
        timestamp=datetime.utcnow().isoformat() + "Z",
    )


# ============================================================================
# Page Lifecycle
# ============================================================================

@app.post("/page/open", response_model=HostResponse)
async def open_page(request: OpenPageRequest) -> HostResponse:
    """
    Open a page, bind a CustomizationAgent to it and initialize it
    (load rules, replay this origin's rules, start observing mutations).
    """
    previous = getattr(app.state, "agent", None)
    if previous is not None:
        await previous.close()
        app.state.agent = None

    if request.html is not None:
        document = SoupDocument(request.html, url=request.url)
    else:
        document = await app.state.browser_controller.open_page(request.url)

    agent = CustomizationAgent(
        document,
        app.state.rule_store,
        app.state.llm,
        settings_store=app.state.settings_store,
    )
    await agent.initialize()
    app.state.agent = agent

    return HostResponse(success=True, result={
        "url": document.url,
        "origin": agent.origin,
        "state": agent.state.value,
        "applied_styles": agent.styles.applied_keys,
    })


@app.get("/page/context", response_model=HostResponse)
async def page_context() -> HostResponse:
    """Current (cached) page context snapshot."""
    snapshot = await _current_agent().get_page_context()
    return HostResponse(success=True, result=_dump(snapshot))


# ============================================================================
# Core Operations
# ============================================================================

@app.post("/tools/execute", response_model=HostResponse)
async def execute_tool(request: ToolRequest) -> HostResponse:
    agent = _current_agent()
    try:
        result = await agent.execute_tool(request.tool, request.parameters)
    except WebTailorError as e:
        logger.error(f"[API] Tool {request.tool} failed: {e}")
        return HostResponse(success=False, error=str(e))
    return HostResponse(success=True, result=result)


@app.post("/commands", response_model=HostResponse)
async def execute_command(request: CommandRequest) -> HostResponse:
    agent = _current_agent()
    try:
        result = await agent.execute_natural_language_command(request.command)
    except WebTailorError as e:
        logger.error(f"[API] Command failed: {e}")
        return HostResponse(success=False, error=str(e))
    return HostResponse(success=True, result=_dump(result))


@app.post("/customize", response_model=HostResponse)
async def customize(request: CustomizeRequest) -> HostResponse:
    """Run the local prompt combined with the stored global prompt."""
    return await _current_agent().process_customization(request.prompt)


@app.post("/rules/apply", response_model=HostResponse)
async def apply_rules() -> HostResponse:
    report = await _current_agent().apply_existing_rules()
    return HostResponse(success=True, result=vars(report))


@app.post("/reset", response_model=HostResponse)
async def reset() -> HostResponse:
    await _current_agent().reset_customizations()
    return HostResponse(success=True)


@app.get("/rules", response_model=HostResponse)
async def list_rules() -> HostResponse:
    """Stored rules for the current page's origin."""
    agent = _current_agent()
    rules: List[Any] = [_dump(rule) for rule in await agent.store.load(agent.origin)]
    return HostResponse(success=True, result={"origin": agent.origin, "rules": rules})


# ============================================================================
# Settings
# ============================================================================

@app.get("/settings", response_model=SettingsResponse)
async def get_settings() -> SettingsResponse:
    stored = await app.state.settings_store.load()
    return SettingsResponse(
        api_key_set=bool(stored["apiKey"]) or app.state.llm.configured,
        global_prompt=stored["globalPromptText"],
    )


@app.put("/settings", response_model=SettingsResponse)
async def update_settings(update: SettingsUpdate) -> SettingsResponse:
    try:
        await app.state.settings_store.update(api_key=update.api_key, global_prompt=update.global_prompt)
    except WebTailorError as e:
        raise HTTPException(status_code=500, detail=str(e))
    if update.api_key is not None:
        app.state.llm.set_api_key(update.api_key.strip())
    return await get_settings()


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    logger.info("Starting webtailor API server...")

    uvicorn.run(
        app,
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_config=None,  # Use logger configuration from utils.logger
    )
