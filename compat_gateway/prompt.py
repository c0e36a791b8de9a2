"""
Prompt policy applied between normalization and execution
"""

from typing import Optional

from .config import DeveloperPromptMode
from .engine.types import InputText, Message, Prompt, WebSearchTool

PROMPT_MARKER = "Compat Gateway compatibility mode"


def ensure_web_search_tool(prompt: Prompt, allow_web_search: bool) -> bool:
    """Declare the web search tool when allowed; returns whether it is available."""
    has_web_search = any(isinstance(tool, WebSearchTool) for tool in prompt.tools)

    if allow_web_search and not has_web_search:
        prompt.tools.append(WebSearchTool())
        has_web_search = True

    return has_web_search


def inject_developer_prompt(
    prompt: Prompt,
    has_web_search: bool,
    system_prompt: Optional[str],
    mode: DeveloperPromptMode,
) -> None:
    """Prepend the compatibility instructions according to ``mode``."""
    if mode == DeveloperPromptMode.DISABLED:
        return
    if mode == DeveloperPromptMode.DEFAULT and system_prompt is not None:
        return

    if has_existing_marker_message(prompt):
        return

    original_system = None
    if mode == DeveloperPromptMode.OVERRIDE and system_prompt is not None:
        original_system = system_prompt.strip() or None

    text = build_developer_prompt_text(has_web_search, original_system)
    prompt.input.insert(0, Message(role="developer", content=[InputText(text=text)]))


def build_developer_prompt_text(has_web_search: bool, original_system: Optional[str] = None) -> str:
    lines = [
        "This compatibility shim cannot run shells, edit files, or inspect your workspace.",
        "Never claim you executed commands or edits; describe what the user should run instead "
        "and wait for their results.",
    ]

    if has_web_search:
        lines.append("You may invoke the `web_search` tool when you truly need new information.")
    else:
        lines.append("No tools are available for this conversation.")

    text = f"{PROMPT_MARKER}:\n" + "\n".join(f"- {line}" for line in lines)

    if original_system:
        text += "\n\nThe original system message follows:\n"
        text += original_system

    return text


def has_existing_marker_message(prompt: Prompt) -> bool:
    for item in prompt.input:
        if not isinstance(item, Message) or item.role != "developer":
            continue
        if any(isinstance(part, InputText) and PROMPT_MARKER in part.text for part in item.content):
            return True
    return False
