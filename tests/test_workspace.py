"""Tests for workspace session state: tabs and two-phase AI file creation."""

import asyncio

import pytest

from codestudio.exceptions import InvalidOperationError
from codestudio.models import ROOT_ID
from codestudio.workspace import Workspace


@pytest.fixture
def workspace(sample_nodes):
    return Workspace(sample_nodes)


def test_default_workspace_has_seed_project():
    ws = Workspace()
    assert any(n.name == "README.md" for n in ws.nodes)


def test_creating_a_file_opens_it(workspace):
    node = workspace.create("new.py", "file", "src")
    assert workspace.tabs[-1].file_id == node.id
    assert workspace.active_tab_id == workspace.tabs[-1].id


def test_creating_a_folder_opens_nothing(workspace):
    workspace.create("lib", "folder", "src")
    assert workspace.tabs == []


def test_opening_an_open_file_focuses_existing_tab(workspace):
    first = workspace.open_file("a")
    workspace.open_file("b")
    again = workspace.open_file("a")
    assert again.id == first.id
    assert len(workspace.tabs) == 2
    assert workspace.active_tab_id == first.id


def test_folders_cannot_be_opened(workspace):
    with pytest.raises(InvalidOperationError):
        workspace.open_file("src")


def test_deleting_folder_closes_tabs_of_descendants(workspace):
    keep = workspace.open_file("a")
    doomed = workspace.open_file("b")

    removed, closed = workspace.delete("src")

    assert removed == {"src", "b"}
    assert closed == [doomed.id]
    assert [t.id for t in workspace.tabs] == [keep.id]
    assert workspace.active_tab_id == keep.id


def test_closing_last_tab_clears_active(workspace):
    tab = workspace.open_file("a")
    workspace.close_tab(tab.id)
    assert workspace.tabs == []
    assert workspace.active_tab_id is None


def test_replace_drops_tabs_for_missing_files(workspace, sample_nodes):
    workspace.open_file("b")
    workspace.replace([n for n in sample_nodes if n.id not in ("src", "b")])
    assert workspace.tabs == []


@pytest.mark.asyncio
async def test_generated_file_starts_with_placeholder_then_fills(workspace):
    release = asyncio.Event()

    async def generator(name, description, nodes):
        await release.wait()
        return f"# {description}\nprint('hi')\n"

    node = await workspace.create_generated("hello.py", "greets", ROOT_ID, generator)
    assert workspace.get(node.id).content.startswith('# AI generating content for "hello.py"')
    assert workspace.tabs[-1].file_id == node.id

    release.set()
    await workspace.generation(node.id)

    assert workspace.get(node.id).content == "# greets\nprint('hi')\n"
    assert workspace.generation(node.id) is None


@pytest.mark.asyncio
async def test_generator_sees_project_context(workspace):
    seen = {}

    async def generator(name, description, nodes):
        seen["names"] = {n.name for n in nodes}
        return ""

    node = await workspace.create_generated("x.js", "thing", "src", generator)
    await workspace.generation(node.id)
    assert {"a.txt", "b.py", "x.js"} <= seen["names"]


@pytest.mark.asyncio
async def test_deleting_pending_file_cancels_generation(workspace):
    started = asyncio.Event()

    async def generator(name, description, nodes):
        started.set()
        await asyncio.sleep(10)
        return "too late"

    node = await workspace.create_generated("slow.py", "slow", ROOT_ID, generator)
    task = workspace.generation(node.id)
    await started.wait()

    workspace.delete(node.id)

    with pytest.raises(asyncio.CancelledError):
        await task
    assert all(n.id != node.id for n in workspace.nodes)


@pytest.mark.asyncio
async def test_failed_generation_replaces_placeholder(workspace):
    async def generator(name, description, nodes):
        raise ValueError("bad AI response")

    node = await workspace.create_generated("x.py", "thing", ROOT_ID, generator)
    content = await workspace.generation(node.id)

    assert content == "// Generation Failed: bad AI response"
    assert workspace.get(node.id).content == content
    assert workspace.generation(node.id) is None


@pytest.mark.asyncio
async def test_generation_cancelled_before_start_never_calls_generator(workspace):
    calls = []

    async def generator(name, description, nodes):
        calls.append(name)
        return "unused"

    node = await workspace.create_generated("x.py", "thing", ROOT_ID, generator)
    task = workspace.generation(node.id)
    workspace.delete(node.id)

    with pytest.raises(asyncio.CancelledError):
        await task
    assert calls == []


def test_closing_focused_tab_returns_to_most_recent(workspace):
    c = workspace.create("c.txt", "file", ROOT_ID)
    workspace.open_file("a")
    b_tab = workspace.open_file("b")
    # Tabs in list order: c.txt, a.txt, b.py
    c_tab = workspace.open_file(c.id)
    workspace.open_file("b")

    workspace.close_tab(b_tab.id)

    # The last tab in the list is a.txt, but c.txt was focused more recently
    assert workspace.active_tab_id == c_tab.id


def test_closing_unfocused_tab_keeps_focus(workspace):
    first = workspace.open_file("a")
    second = workspace.open_file("b")

    workspace.close_tab(first.id)
    assert workspace.active_tab_id == second.id
    assert workspace.tab_history == [second.id]
