"""Tests for the AI assistant client."""

import json

import httpx
import pytest

from codestudio.ai_client import AIClient, strip_code_fences
from codestudio.models import ROOT_ID

from conftest import file, folder


def completion(text):
    return httpx.Response(200, json={"choices": [{"message": {"content": text}}]})


def test_strip_code_fences():
    assert strip_code_fences("```python\nprint(1)\n```") == "print(1)"
    assert strip_code_fences("print(1)") == "print(1)"


@pytest.mark.asyncio
async def test_mock_mode_without_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    client = AIClient()
    result = await client.execute_code("print(1)", "python")
    assert result.error is True
    assert (await client.generate_file_content("a.py", "x", [])).startswith("// Error")
    await client.close()


@pytest.mark.asyncio
async def test_execute_code_uses_execution_model():
    seen = {}

    def handler(request):
        seen.update(json.loads(request.content))
        return completion("1\n")

    client = AIClient(api_key="sk-test", execution_model="fast-model",
                      transport=httpx.MockTransport(handler))
    result = await client.execute_code("print(1)", "python")
    await client.close()

    assert result.output == "1\n"
    assert result.error is False
    assert seen["model"] == "fast-model"


@pytest.mark.asyncio
async def test_execute_code_failure_is_reported_as_output():
    client = AIClient(api_key="sk-test",
                      transport=httpx.MockTransport(lambda r: httpx.Response(500)))
    result = await client.execute_code("print(1)", "python")
    await client.close()

    assert result.error is True
    assert result.output.startswith("Execution Failed")


@pytest.mark.asyncio
async def test_generated_content_is_unfenced_and_sees_structure():
    prompts = []

    def handler(request):
        prompts.append(json.loads(request.content)["messages"][-1]["content"])
        return completion("```js\nexport const x = 1;\n```")

    nodes = [folder(ROOT_ID, "root", parent_id=None), folder("src", "src"),
             file("m", "main.js", parent_id="src")]
    client = AIClient(api_key="sk-test", transport=httpx.MockTransport(handler))
    content = await client.generate_file_content("x.js", "exports x", nodes)
    await client.close()

    assert content == "export const x = 1;"
    assert "DIR  src" in prompts[0]
    assert "FILE main.js" in prompts[0]


@pytest.mark.asyncio
async def test_chat_failure_raises_runtime_error():
    client = AIClient(api_key="sk-test",
                      transport=httpx.MockTransport(lambda r: httpx.Response(503)))
    with pytest.raises(RuntimeError):
        await client.chat("hi", "", [])
    await client.close()


@pytest.mark.asyncio
async def test_malformed_reply_is_a_runtime_error():
    client = AIClient(api_key="sk-test",
                      transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"choices": []})))
    with pytest.raises(RuntimeError):
        await client.chat("hi", "", [])
    content = await client.generate_file_content("x.py", "thing", [])
    await client.close()

    assert content.startswith("// Generation Failed")


@pytest.mark.asyncio
async def test_generate_image_returns_base64_data():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen.update(json.loads(request.content))
        return httpx.Response(200, json={"data": [{"b64_json": "iVBORw0KGgo="}]})

    client = AIClient(api_key="sk-test", image_model="img-model",
                      transport=httpx.MockTransport(handler))
    image = await client.generate_image("a red square", "2K")
    await client.close()

    assert image == "iVBORw0KGgo="
    assert seen["path"].endswith("/images/generations")
    assert seen["model"] == "img-model"
    assert seen["size"] == "2048x2048"


@pytest.mark.asyncio
async def test_generate_image_failure_returns_none(monkeypatch):
    client = AIClient(api_key="sk-test",
                      transport=httpx.MockTransport(lambda r: httpx.Response(400)))
    assert await client.generate_image("a red square") is None
    await client.close()

    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    mock = AIClient()
    assert await mock.generate_image("a red square") is None
    await mock.close()
