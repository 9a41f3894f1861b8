"""
CodeStudio API Models

Pydantic models for project nodes and request/response validation.
"""

from typing import List, Literal, Optional
from pydantic import BaseModel, Field, model_validator


ROOT_ID = "root"

NodeKind = Literal["file", "folder"]


# Project tree models

class Node(BaseModel):
    """One file or folder entry in the project tree."""
    id: str = Field(..., description="Opaque identifier, stable for the node's lifetime")
    name: str = Field(..., description="Display name, including any extension")
    kind: NodeKind = Field(..., description="'file' or 'folder'")
    parent_id: Optional[str] = Field(None, description="Containing folder id; None only for the root")
    content: Optional[str] = Field(None, description="File contents; absent for folders")
    expanded: Optional[bool] = Field(None, description="Folder expansion state (presentation only)")
    language: Optional[str] = Field(None, description="Language tag inferred from the extension")

    @model_validator(mode="after")
    def _content_matches_kind(self):
        if self.kind == "file" and self.content is None:
            self.content = ""
        if self.kind == "folder" and self.content is not None:
            raise ValueError(f"Folder '{self.name}' cannot have content")
        return self

    @property
    def is_file(self) -> bool:
        return self.kind == "file"

    @property
    def is_folder(self) -> bool:
        return self.kind == "folder"


class Tab(BaseModel):
    """An open editor view bound to a file node."""
    id: str = Field(..., description="Tab identifier")
    file_id: str = Field(..., description="Id of the file shown in this tab")


class PayloadEntry(BaseModel):
    """One file ready to publish."""
    path: str = Field(..., description="Slash-separated path relative to the repository root")
    content: str = Field(..., description="File contents")


class ProjectResponse(BaseModel):
    """Current project snapshot."""
    nodes: List[Node] = Field(..., description="Flat node collection in display order")
    tabs: List[Tab] = Field(default_factory=list, description="Open editor tabs")
    active_tab_id: Optional[str] = Field(None, description="Currently focused tab")


class ReplaceProjectRequest(BaseModel):
    """Request to replace the whole project with a client-held snapshot."""
    nodes: List[Node] = Field(..., description="Complete flat node collection")


# Node operation models

class CreateNodeRequest(BaseModel):
    """Request to create a file or folder."""
    name: str = Field(..., description="Name of the new node")
    kind: NodeKind = Field(..., description="'file' or 'folder'")
    parent_id: str = Field(ROOT_ID, description="Folder to create the node in")


class GenerateFileRequest(BaseModel):
    """Request to create a file whose content is written by the AI assistant."""
    name: str = Field(..., description="Name of the new file")
    description: str = Field(..., description="What the file should contain")
    parent_id: str = Field(ROOT_ID, description="Folder to create the file in")


class RenameNodeRequest(BaseModel):
    """Request to rename a node."""
    name: str = Field(..., description="New name")


class MoveNodeRequest(BaseModel):
    """Request to reparent a node."""
    parent_id: str = Field(..., description="Destination folder id")


class UpdateContentRequest(BaseModel):
    """Request to replace a file's contents."""
    content: str = Field(..., description="Updated file contents")


class NodeResponse(BaseModel):
    """A single node after an operation."""
    node: Node = Field(..., description="The created or updated node")


class NodePathResponse(BaseModel):
    """Resolved path of a node."""
    id: str = Field(..., description="Node id")
    path: Optional[str] = Field(None, description="Slash-separated path, or None if unresolvable")


class DeleteNodeResponse(BaseModel):
    """Result of a cascading delete."""
    removed_ids: List[str] = Field(..., description="Ids of the node and every descendant removed")
    closed_tab_ids: List[str] = Field(default_factory=list, description="Tabs closed because their file was removed")


class OpenTabRequest(BaseModel):
    """Request to open a file in a tab."""
    file_id: str = Field(..., description="File to open")


# AI assistant models

class RunRequest(BaseModel):
    """Request to (simulate) running a file."""
    file_id: str = Field(..., description="File to run")


class ExecutionResult(BaseModel):
    """Simulated program output."""
    output: str = Field(..., description="Simulated stdout or stderr text")
    error: bool = Field(False, description="Whether the output represents a failure")


class ChatRequest(BaseModel):
    """Request to chat with the AI assistant about the project."""
    message: str = Field(..., description="User message")
    active_file_id: Optional[str] = Field(None, description="File currently focused in the editor")


class ChatResponse(BaseModel):
    """Reply from the AI assistant."""
    reply: str = Field(..., description="Assistant reply")


class AnalyzeResponse(BaseModel):
    """Project analysis from the AI assistant."""
    report: str = Field(..., description="Summary, issues found and suggested fixes")


class ImageRequest(BaseModel):
    """Request to generate an image from a text prompt."""
    prompt: str = Field(..., description="Description of the image")
    size: Literal["1K", "2K", "4K"] = Field("1K", description="Square image resolution")


class ImageResponse(BaseModel):
    """Generated image, or a failure notice."""
    image: Optional[str] = Field(None, description="Base64-encoded PNG, absent on failure")
    message: str = Field(..., description="Status line for the chat panel")


# GitHub sync models

class GitHubUser(BaseModel):
    """The GitHub account a token belongs to."""
    id: str = Field(..., description="Numeric GitHub account id")
    username: str = Field(..., description="GitHub login")
    avatar_url: str = Field("", description="Avatar image URL")
    html_url: str = Field(..., description="Profile page URL")


class PublishResult(BaseModel):
    """Outcome of a publish to GitHub."""
    repository_url: str = Field(..., description="Web URL of the repository")
    branch: str = Field(..., description="Branch the commit was written to")
    commit_sha: str = Field(..., description="SHA of the new commit")
    files_pushed: int = Field(..., description="Number of files in the commit")
    files_skipped: int = Field(0, description="Files dropped because their blob upload failed")


class PushResponse(BaseModel):
    """Response for a successful publish."""
    repo_url: str = Field(..., description="Web URL of the repository")
    branch: str = Field(..., description="Branch that was updated")
    commit_sha: str = Field(..., description="SHA of the new commit")
    files_pushed: int = Field(..., description="Number of files in the commit")
    files_skipped: int = Field(0, description="Files dropped because their blob upload failed")
    progress: List[str] = Field(default_factory=list, description="Status messages reported during the publish")


# Error response model

class ErrorResponse(BaseModel):
    """Error response."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    is_auth_error: bool = Field(False, description="Whether the client should re-authenticate with GitHub")
