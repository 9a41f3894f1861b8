"""
CodeStudio Configuration

Handles environment configuration for the server, the AI assistant and GitHub sync.
"""

import os


# Server configuration
HOST = os.getenv("CODESTUDIO_HOST", "127.0.0.1")
PORT = int(os.getenv("CODESTUDIO_PORT", "5000"))

# AI assistant (OpenAI-compatible chat completions API)
AI_BASE_URL = os.getenv("AI_BASE_URL", "https://api.openai.com/v1")
AI_MODEL = os.getenv("AI_MODEL", "gpt-4-turbo")
# Faster model used to simulate program output
EXECUTION_MODEL = os.getenv("EXECUTION_MODEL", "gpt-3.5-turbo")
IMAGE_MODEL = os.getenv("IMAGE_MODEL", "gpt-image-1")

# GitHub configuration
# Fallback token when the browser does not send its own bearer credential.
# Needs 'repo' scope to create repositories and write objects.
GITHUB_TOKEN = os.getenv("GITHUB_TOKEN", "")
GITHUB_API_URL = os.getenv("GITHUB_API_URL", "https://api.github.com")
GITHUB_WEB_URL = os.getenv("GITHUB_WEB_URL", "https://github.com")
# Empty means "the authenticated user"
GITHUB_OWNER = os.getenv("GITHUB_OWNER", "")
GITHUB_REPO_NAME = os.getenv("GITHUB_REPO_NAME", "codestudio-project")
GITHUB_PRIVATE = os.getenv("GITHUB_PRIVATE", "false").lower() == "true"

# Sync behaviour
# Seconds to wait after state-changing calls GitHub applies eventually
SYNC_SETTLE_DELAY = float(os.getenv("SYNC_SETTLE_DELAY", "2.0"))
# 'force-overwrite' or 'fail-on-divergence'
SYNC_CONFLICT_POLICY = os.getenv("SYNC_CONFLICT_POLICY", "force-overwrite")
SYNC_COMMIT_MESSAGE = os.getenv("SYNC_COMMIT_MESSAGE", "Sync from CodeStudio")
