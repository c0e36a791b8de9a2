import pytest

from compat_gateway.config import DeveloperPromptMode
from compat_gateway.engine.types import InputText, Message, Prompt, WebSearchTool
from compat_gateway.prompt import (
    PROMPT_MARKER,
    build_developer_prompt_text,
    ensure_web_search_tool,
    inject_developer_prompt,
)


def _prompt_with_user(text="hi"):
    return Prompt(input=[Message(role="user", content=[InputText(text=text)])])


def _developer_messages(prompt):
    return [item for item in prompt.input if isinstance(item, Message) and item.role == "developer"]


def test_ensure_web_search_is_idempotent():
    prompt = Prompt()

    assert ensure_web_search_tool(prompt, True) is True
    assert ensure_web_search_tool(prompt, True) is True
    assert sum(isinstance(tool, WebSearchTool) for tool in prompt.tools) == 1


def test_ensure_web_search_respects_disallowed():
    prompt = Prompt()
    assert ensure_web_search_tool(prompt, False) is False
    assert prompt.tools == []


def test_existing_web_search_counts_even_when_disallowed():
    prompt = Prompt(tools=[WebSearchTool()])
    assert ensure_web_search_tool(prompt, False) is True
    assert len(prompt.tools) == 1


def test_default_mode_injects_without_system_prompt():
    prompt = _prompt_with_user()
    inject_developer_prompt(prompt, False, None, DeveloperPromptMode.DEFAULT)

    first = prompt.input[0]
    assert isinstance(first, Message)
    assert first.role == "developer"
    text = first.content[0].text
    assert text.startswith(f"{PROMPT_MARKER}:\n- ")
    assert "No tools are available for this conversation." in text
    assert len(prompt.input) == 2


def test_default_mode_skips_when_system_prompt_present():
    prompt = _prompt_with_user()
    inject_developer_prompt(prompt, False, "Be brief", DeveloperPromptMode.DEFAULT)
    assert _developer_messages(prompt) == []


def test_disabled_mode_never_injects():
    prompt = _prompt_with_user()
    inject_developer_prompt(prompt, True, None, DeveloperPromptMode.DISABLED)
    assert _developer_messages(prompt) == []


def test_override_mode_appends_original_system_message():
    prompt = _prompt_with_user()
    inject_developer_prompt(prompt, True, "  Be brief  ", DeveloperPromptMode.OVERRIDE)

    text = prompt.input[0].content[0].text
    assert "You may invoke the `web_search` tool" in text
    assert text.endswith("\n\nThe original system message follows:\nBe brief")


def test_override_mode_without_system_prompt_has_no_appendix():
    text = build_developer_prompt_text(False, None)
    assert "original system message" not in text


@pytest.mark.parametrize("mode", list(DeveloperPromptMode))
def test_marker_is_never_injected_twice(mode):
    prompt = _prompt_with_user()
    prompt.input.insert(0, Message(role="developer", content=[InputText(text=f"{PROMPT_MARKER}: existing")]))

    inject_developer_prompt(prompt, False, None, mode)
    inject_developer_prompt(prompt, False, "sys", mode)

    assert len(_developer_messages(prompt)) == 1
