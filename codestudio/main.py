"""
CodeStudio Backend

FastAPI application serving the CodeStudio browser workspace: the virtual
project tree, the AI assistant and publishing to GitHub.
"""

import logging
from typing import List, Optional

# Load API keys before the config module reads the environment
from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from .ai_client import AIClient
from .exceptions import (
    AuthExpired,
    NodeNotFoundError,
    SyncError,
    TreeError,
    ValidationError,
)
from .github_publisher import GitHubPublisher
from .models import (
    AnalyzeResponse,
    ChatRequest,
    ChatResponse,
    CreateNodeRequest,
    DeleteNodeResponse,
    ErrorResponse,
    ExecutionResult,
    GenerateFileRequest,
    GitHubUser,
    ImageRequest,
    ImageResponse,
    MoveNodeRequest,
    NodePathResponse,
    NodeResponse,
    OpenTabRequest,
    ProjectResponse,
    PushResponse,
    RenameNodeRequest,
    ReplaceProjectRequest,
    RunRequest,
    Tab,
    UpdateContentRequest,
)
from .paths import resolve_path
from .sync import fetch_current_user, sync_project
from .workspace import Workspace
from .config import HOST, PORT, GITHUB_TOKEN

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="CodeStudio",
    description="Browser coding workspace with an AI assistant and GitHub sync",
    version="1.0.0",
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Singletons
ai_client: Optional[AIClient] = None
workspace: Optional[Workspace] = None


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    global ai_client, workspace
    ai_client = AIClient()
    workspace = Workspace()
    logger.info(f"CodeStudio starting on {HOST}:{PORT}")


@app.on_event("shutdown")
async def shutdown_event():
    """Clean up services on shutdown."""
    global ai_client
    if ai_client:
        await ai_client.close()
    logger.info("CodeStudio shut down")


def _project_response() -> ProjectResponse:
    return ProjectResponse(
        nodes=workspace.snapshot(),
        tabs=workspace.tabs,
        active_tab_id=workspace.active_tab_id,
    )


def _tree_error(e: TreeError) -> HTTPException:
    status = 404 if isinstance(e, NodeNotFoundError) else 400
    return HTTPException(status_code=status, detail=str(e))


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": "CodeStudio",
        "nodes": len(workspace.nodes) if workspace else 0,
    }


# ============================================================================
# Project Tree Endpoints
# ============================================================================

@app.get("/api/project", response_model=ProjectResponse)
async def get_project():
    """Return the flat node collection and open tabs."""
    return _project_response()


@app.put("/api/project", response_model=ProjectResponse)
async def replace_project(request: ReplaceProjectRequest):
    """
    Replace the whole project with a snapshot held by the client.
    """
    try:
        workspace.replace(request.nodes)
        logger.info(f"Project replaced ({len(request.nodes)} nodes)")
        return _project_response()
    except TreeError as e:
        logger.warning(f"Rejected project snapshot: {e}")
        raise _tree_error(e)


@app.post("/api/project/nodes", response_model=NodeResponse)
async def create_node(request: CreateNodeRequest):
    """Create a file or folder."""
    try:
        node = workspace.create(request.name, request.kind, request.parent_id)
        logger.info(f"Created {node.kind}: {node.name}")
        return NodeResponse(node=node)
    except TreeError as e:
        raise _tree_error(e)


@app.post("/api/project/nodes/generate", response_model=NodeResponse)
async def generate_file(request: GenerateFileRequest):
    """
    Create a file whose content the AI assistant writes.

    Returns the placeholder node at once; the content is replaced when the
    generation completes.
    """
    try:
        node = await workspace.create_generated(
            request.name,
            request.description,
            request.parent_id,
            ai_client.generate_file_content,
        )
        return NodeResponse(node=node)
    except TreeError as e:
        raise _tree_error(e)


@app.patch("/api/project/nodes/{node_id}", response_model=NodeResponse)
async def rename_node(node_id: str, request: RenameNodeRequest):
    """Rename a node."""
    try:
        return NodeResponse(node=workspace.rename(node_id, request.name))
    except TreeError as e:
        raise _tree_error(e)


@app.post("/api/project/nodes/{node_id}/move", response_model=NodeResponse)
async def move_node(node_id: str, request: MoveNodeRequest):
    """Reparent a node (drag and drop)."""
    try:
        return NodeResponse(node=workspace.move(node_id, request.parent_id))
    except TreeError as e:
        logger.warning(f"Rejected move of {node_id}: {e}")
        raise _tree_error(e)


@app.put("/api/project/nodes/{node_id}/content", response_model=NodeResponse)
async def update_content(node_id: str, request: UpdateContentRequest):
    """Save editor contents into a file."""
    try:
        return NodeResponse(node=workspace.update_content(node_id, request.content))
    except TreeError as e:
        raise _tree_error(e)


@app.post("/api/project/nodes/{node_id}/toggle", response_model=NodeResponse)
async def toggle_folder(node_id: str):
    """Expand or collapse a folder."""
    try:
        return NodeResponse(node=workspace.toggle(node_id))
    except TreeError as e:
        raise _tree_error(e)


@app.delete("/api/project/nodes/{node_id}", response_model=DeleteNodeResponse)
async def delete_node(node_id: str):
    """Delete a node, its descendants and any tabs showing them."""
    try:
        removed, closed = workspace.delete(node_id)
        return DeleteNodeResponse(removed_ids=sorted(removed), closed_tab_ids=closed)
    except TreeError as e:
        raise _tree_error(e)


@app.get("/api/project/nodes/{node_id}/path", response_model=NodePathResponse)
async def node_path(node_id: str):
    """Resolve the slash-separated path of a node."""
    try:
        node = workspace.get(node_id)
    except TreeError as e:
        raise _tree_error(e)
    return NodePathResponse(id=node_id, path=resolve_path(node, workspace.nodes))


# ============================================================================
# Tab Endpoints
# ============================================================================

@app.post("/api/tabs", response_model=Tab)
async def open_tab(request: OpenTabRequest):
    """Open a file in a tab, or focus its existing tab."""
    try:
        return workspace.open_file(request.file_id)
    except TreeError as e:
        raise _tree_error(e)


@app.delete("/api/tabs/{tab_id}", response_model=ProjectResponse)
async def close_tab(tab_id: str):
    """Close a tab."""
    try:
        workspace.close_tab(tab_id)
        return _project_response()
    except TreeError as e:
        raise HTTPException(status_code=404, detail=str(e))


# ============================================================================
# AI Assistant Endpoints
# ============================================================================

@app.post("/api/run", response_model=ExecutionResult)
async def run_file(request: RunRequest):
    """
    Simulate running a file; the AI model predicts its console output.
    """
    try:
        node = workspace.get(request.file_id)
    except TreeError as e:
        raise _tree_error(e)
    if not node.is_file:
        raise HTTPException(status_code=400, detail=f"'{node.name}' is not a file")

    result = await ai_client.execute_code(node.content or "", node.language or "text")
    logger.info(f"Simulated run of {node.name} (error={result.error})")
    return result


@app.post("/api/ai/chat", response_model=ChatResponse)
async def ai_chat(request: ChatRequest):
    """
    Chat with the AI assistant about the project.
    """
    active_content = ""
    if request.active_file_id:
        try:
            active_content = workspace.get(request.active_file_id).content or ""
        except TreeError as e:
            raise _tree_error(e)

    try:
        reply = await ai_client.chat(request.message, active_content, workspace.snapshot())
        return ChatResponse(reply=reply)
    except RuntimeError as e:
        logger.error(f"AI chat error: {e}")
        raise HTTPException(status_code=503, detail=str(e))


@app.post("/api/ai/analyze", response_model=AnalyzeResponse)
async def ai_analyze():
    """
    Ask the AI assistant to review the whole project.
    """
    try:
        report = await ai_client.analyze_project(workspace.snapshot())
        return AnalyzeResponse(report=report)
    except RuntimeError as e:
        logger.error(f"AI analysis error: {e}")
        raise HTTPException(status_code=503, detail=str(e))


@app.post("/api/ai/image", response_model=ImageResponse)
async def ai_image(request: ImageRequest):
    """
    Generate an image for the chat panel.
    """
    image = await ai_client.generate_image(request.prompt, request.size)
    if image is None:
        return ImageResponse(image=None, message="Failed to generate image.")
    logger.info(f"Generated {request.size} image")
    return ImageResponse(image=image, message="Image generated successfully.")


# ============================================================================
# GitHub Sync Endpoints
# ============================================================================

def _sync_error_response(status_code: int, e: SyncError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=e.message,
            detail=type(e).__name__,
            is_auth_error=e.is_auth_error,
        ).model_dump(),
    )


def _github_token(authorization: Optional[str]) -> str:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return GITHUB_TOKEN


@app.get("/api/github/user", response_model=GitHubUser)
async def github_user(authorization: Optional[str] = Header(None)):
    """
    Return the GitHub account the client is signed in as.
    """
    token = _github_token(authorization)
    if not token:
        return _sync_error_response(401, AuthExpired("Not signed in to GitHub."))

    async with GitHubPublisher(token=token) as publisher:
        try:
            return await fetch_current_user(publisher)
        except AuthExpired as e:
            return _sync_error_response(401, e)
        except SyncError as e:
            return _sync_error_response(502, e)


@app.post("/api/github/push", response_model=PushResponse)
async def github_push(authorization: Optional[str] = Header(None)):
    """
    Publish the whole project to GitHub as a single commit.
    """
    token = _github_token(authorization)
    if not token:
        return _sync_error_response(401, AuthExpired("Not signed in to GitHub."))

    if workspace.publish_lock.locked():
        raise HTTPException(status_code=409, detail="A sync is already in progress")

    progress: List[str] = []
    async with workspace.publish_lock:
        async with GitHubPublisher(token=token) as publisher:
            try:
                result = await sync_project(workspace.snapshot(), publisher, progress.append)
            except AuthExpired as e:
                return _sync_error_response(401, e)
            except ValidationError as e:
                return _sync_error_response(400, e)
            except SyncError as e:
                return _sync_error_response(502, e)

    logger.info(f"Pushed {result.files_pushed} files to {result.repository_url}")
    return PushResponse(
        repo_url=result.repository_url,
        branch=result.branch,
        commit_sha=result.commit_sha,
        files_pushed=result.files_pushed,
        files_skipped=result.files_skipped,
        progress=progress,
    )


# ============================================================================
# Error Handlers
# ============================================================================

@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    """Custom handler for HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.detail,
            detail=None,
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    """Catch-all handler for unexpected errors."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="Internal server error",
            detail=str(exc),
        ).model_dump(),
    )


# ============================================================================
# Development Server
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "codestudio.main:app",
        host=HOST,
        port=PORT,
        reload=True,
        log_level="info",
    )
