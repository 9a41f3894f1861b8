"""
AI Assistant Client

Talks to an OpenAI-compatible API for simulated code execution,
project-aware chat, file generation, project analysis and image generation.
Falls back to canned replies when no API key is configured.
"""

import os
import re
import httpx
from typing import List, Dict, Optional, Sequence
import logging

from .config import AI_BASE_URL, AI_MODEL, EXECUTION_MODEL, IMAGE_MODEL
from .models import ExecutionResult, Node

logger = logging.getLogger(__name__)

_FENCE_START = re.compile(r"^```[a-zA-Z0-9_+-]*\n")
_FENCE_END = re.compile(r"\n```\s*$")

# Square output sizes offered to the chat panel
IMAGE_SIZES = {"1K": "1024x1024", "2K": "2048x2048", "4K": "4096x4096"}


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code block if the model added one anyway."""
    return _FENCE_END.sub("", _FENCE_START.sub("", text))


def _project_summary(nodes: Sequence[Node], limit: Optional[int] = 500) -> str:
    blocks = []
    for node in nodes:
        if not node.is_file:
            continue
        content = node.content or ""
        if limit is not None and len(content) > limit:
            content = content[:limit] + "..."
        blocks.append(f"File: {node.name}\n```{node.language or 'text'}\n{content}\n```")
    return "\n\n".join(blocks)


class AIClient:
    """
    Client for the coding assistant model.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = AI_BASE_URL,
        model: str = AI_MODEL,
        execution_model: str = EXECUTION_MODEL,
        image_model: str = IMAGE_MODEL,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        # Load API Key from Environment
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.execution_model = execution_model
        self.image_model = image_model
        self.timeout = timeout
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

        if self.api_key:
            logger.info(f"AI client initialized (model: {model})")
        else:
            logger.warning("AI client initialized in MOCK mode (no OPENAI_API_KEY)")

    async def _complete(self, messages: List[Dict[str, str]], model: Optional[str] = None) -> str:
        """Send a chat completion request and return the reply text."""
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        payload = {
            "model": model or self.model,
            "messages": messages,
            "temperature": 0.7
        }

        try:
            response = await self.client.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers=headers
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"AI request failed: {e}")
            raise RuntimeError(f"Failed to communicate with AI model: {e}")

        try:
            data = response.json()
            return data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"Malformed AI response: {e!r}")
            raise RuntimeError("AI model returned an unreadable response")

    async def execute_code(self, code: str, language: str) -> ExecutionResult:
        """
        Simulate running code and return what it would print.

        Failures are reported as an error result rather than raised, so the
        console can show them like program output.
        """
        if not self.api_key:
            return ExecutionResult(output="Error: OPENAI_API_KEY is missing.", error=True)

        prompt = (
            f"Language: {language}.\n"
            f"Code:\n```{language}\n{code}\n```\n\n"
            "Simulate the execution of this code.\n"
            "- If it is a script, return the STDOUT.\n"
            "- If there are errors, return the STDERR.\n"
            "- Do NOT explain the code. Just output the result."
        )
        messages = [
            {"role": "system", "content": "You are a specialized code execution sandbox."},
            {"role": "user", "content": prompt}
        ]

        try:
            output = await self._complete(messages, model=self.execution_model)
            return ExecutionResult(output=output, error=False)
        except RuntimeError as e:
            return ExecutionResult(output=f"Execution Failed: {e}", error=True)

    async def chat(
        self,
        message: str,
        active_content: str,
        nodes: Sequence[Node],
    ) -> str:
        """Answer a question about the project."""
        if not self.api_key:
            return "Please configure OPENAI_API_KEY to use the assistant."

        active = f"Active File:\n{active_content}" if active_content else "No active file"
        messages = [
            {"role": "system", "content": "You are an expert AI coding assistant in a cloud IDE."},
            {
                "role": "user",
                "content": (
                    f'User Query: "{message}"\n\n'
                    f"Context (Currently Active File & Project Structure):\n{active}\n\n"
                    f"Project Files Summary:\n{_project_summary(nodes)}\n\n"
                    "Provide a helpful, concise response. If asking to generate code, provide the code block."
                ),
            },
        ]
        return await self._complete(messages)

    async def generate_file_content(
        self,
        name: str,
        description: str,
        nodes: Sequence[Node],
    ) -> str:
        """
        Write the contents of a new file.

        Returns the generated code, or a comment describing the failure.
        """
        if not self.api_key:
            return "// Error: OPENAI_API_KEY is missing."

        structure = "\n".join(
            f"{'DIR ' if n.is_folder else 'FILE'} {n.name}" for n in nodes if n.parent_id is not None
        )
        prompt = (
            f"Current Project Structure:\n{structure}\n\n"
            f'Task: Generate the content for a new file named "{name}".\n'
            f'Description: "{description}".\n\n'
            "Rules:\n"
            "1. Return ONLY the valid code for this file.\n"
            "2. Do NOT wrap in markdown code blocks.\n"
            "3. Do NOT include explanations or conversation.\n"
            "4. Ensure the code is complete, functional, and consistent with the project structure."
        )
        messages = [
            {"role": "system", "content": "You are an expert code generator adding a file to an existing project."},
            {"role": "user", "content": prompt}
        ]

        try:
            return strip_code_fences(await self._complete(messages))
        except RuntimeError as e:
            return f"// Generation Failed: {e}"

    async def analyze_project(self, nodes: Sequence[Node]) -> str:
        """Review the whole project for bugs and security issues."""
        if not self.api_key:
            return "Please configure OPENAI_API_KEY to use the assistant."

        files = [n for n in nodes if n.is_file and n.content]
        prompt = (
            "Analyze the following project for errors, bugs, logical flaws, and security issues.\n\n"
            f"Project Files:\n{_project_summary(files, limit=None)}\n\n"
            "Output Format:\n"
            "1. **Summary**: Brief overview of the project status.\n"
            "2. **Issues Found**: List of specific issues (file name, line number if possible, description).\n"
            "3. **Suggested Fixes**: Code snippets or instructions to fix the issues.\n\n"
            "If the project looks good, say so. Be concise but thorough."
        )
        messages = [
            {"role": "system", "content": "You are an expert software architect and debugger."},
            {"role": "user", "content": prompt}
        ]
        return await self._complete(messages)

    async def generate_image(self, prompt: str, size: str = "1K") -> Optional[str]:
        """
        Generate a square image.

        Returns:
            Base64-encoded PNG data, or None if generation failed
        """
        if not self.api_key:
            return None

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        payload = {
            "model": self.image_model,
            "prompt": prompt,
            "n": 1,
            "size": IMAGE_SIZES.get(size, IMAGE_SIZES["1K"]),
        }

        try:
            response = await self.client.post(
                f"{self.base_url}/images/generations",
                json=payload,
                headers=headers
            )
            response.raise_for_status()
            return response.json()["data"][0]["b64_json"] or None
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"Image generation failed: {e!r}")
            return None

    async def close(self):
        if self.client:
            await self.client.aclose()
