# v0_mcp/mcp_handlers/prompts.py
"""Guidance prompts exposed through prompts/list and prompts/get."""
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field


class PromptArgument(BaseModel):
    name: str
    description: str
    required: bool = False


class PromptDefinition(BaseModel):
    name: str
    title: str
    description: str
    arguments: List[PromptArgument] = Field(default_factory=list)


V0_PROMPTS: List[PromptDefinition] = [
    PromptDefinition(
        name="create_v0_chat",
        title="Create V0 Chat",
        description="Guide for creating a new V0 chat with best practices",
        arguments=[
            PromptArgument(name="project_type", description="Type of project (e.g., react, nextjs, vue, etc.)"),
            PromptArgument(name="complexity", description="Complexity level (simple, medium, complex)"),
        ],
    ),
    PromptDefinition(
        name="iterate_v0_chat",
        title="Iterate on V0 Chat",
        description="Help with continuing and refining an existing V0 conversation",
        arguments=[
            PromptArgument(name="chat_id", description="The ID of the existing chat to continue", required=True),
            PromptArgument(
                name="iteration_type",
                description="Type of iteration (refinement, new_feature, bug_fix, styling)",
            ),
        ],
    ),
    PromptDefinition(
        name="organize_v0_chats",
        title="Organize V0 Chats",
        description="Guide for finding, organizing, and managing V0 chats",
        arguments=[
            PromptArgument(name="action", description="Action to perform (list, search, favorite, organize)"),
        ],
    ),
    PromptDefinition(
        name="v0_project_setup",
        title="V0 Project Setup",
        description="Comprehensive guide for setting up and managing V0 projects",
        arguments=[
            PromptArgument(name="project_name", description="Name for the new project"),
            PromptArgument(name="framework", description="Framework to use (react, nextjs, vue, etc.)"),
        ],
    ),
    PromptDefinition(
        name="v0_workflow_optimization",
        title="V0 Workflow Optimization",
        description="Advanced tips for optimizing your V0 development workflow",
        arguments=[
            PromptArgument(name="use_case", description="Primary use case (prototyping, production, learning, etc.)"),
        ],
    ),
    PromptDefinition(
        name="v0_troubleshooting",
        title="V0 Troubleshooting",
        description="Help with common V0 issues and error resolution",
        arguments=[
            PromptArgument(
                name="issue_type",
                description="Type of issue (api_error, chat_problem, project_issue, etc.)",
            ),
        ],
    ),
]

_MODEL_BY_COMPLEXITY = {"simple": "v0-1.5-sm", "medium": "v0-1.5-md", "complex": "v0-1.5-lg"}

_ITERATION_TIPS = {
    "refinement": (
        "- Say exactly what should improve and where\n"
        "- Name the components or sections involved\n"
        "- Separate what works from what does not"
    ),
    "new_feature": (
        "- Describe the feature and the user story behind it\n"
        "- Explain how it connects to the existing code\n"
        "- Call out anything it must not break"
    ),
    "bug_fix": (
        "- Describe the failure and how to reproduce it\n"
        "- Paste the exact error message\n"
        "- State expected versus actual behaviour"
    ),
    "styling": (
        "- Reference colours, spacing and layout precisely\n"
        "- Mention responsive behaviour\n"
        "- Include accessibility requirements"
    ),
}

_TROUBLESHOOTING_TIPS = {
    "api_error": (
        "- Re-run the authorization flow if calls fail with an invalid API key\n"
        "- Rate-limited responses clear after a short wait\n"
        "- Use get_user_info to confirm the key and plan are active"
    ),
    "chat_problem": (
        "- Confirm the chat id with find_chats\n"
        "- Use get_chat_by_id to inspect the latest version\n"
        "- Break large requests into smaller create_message calls"
    ),
    "project_issue": (
        "- Check the project id returned by create_project\n"
        "- Pass projectId to create_chat or init_chat to attach new chats"
    ),
}


def _message(text: str) -> Dict[str, Any]:
    return {"role": "user", "content": {"type": "text", "text": text}}


def _create_chat_prompt(args: Mapping[str, Any]) -> Dict[str, Any]:
    project_type = args.get("project_type") or "web application"
    complexity = args.get("complexity") or "medium"
    model_id = _MODEL_BY_COMPLEXITY.get(complexity, "v0-1.5-md")
    return _message(
        f"You are about to create a new V0 chat for a {complexity} complexity {project_type}.\n\n"
        "## Writing the first message\n"
        "- Describe what to build and list the concrete features\n"
        "- Name the stack and libraries you prefer\n"
        "- State styling, responsiveness and accessibility expectations\n\n"
        "## Calling create_chat\n"
        "```json\n"
        "{\n"
        '  "message": "Your detailed project description",\n'
        f'  "system": "You are an expert {project_type} developer focused on clean code and good UX.",\n'
        '  "chatPrivacy": "private",\n'
        f'  "modelConfiguration": {{"modelId": "{model_id}", "thinking": true}}\n'
        "}\n"
        "```\n\n"
        "Follow up with create_message to iterate, and list_files to inspect generated code."
    )


def _iterate_chat_prompt(args: Mapping[str, Any]) -> Dict[str, Any]:
    chat_id = args.get("chat_id")
    if not chat_id:
        return _message(
            "To iterate on a V0 chat you need its chat_id. "
            "Use the find_chats tool to list your chats and pick the one to continue."
        )
    iteration_type = args.get("iteration_type") or "refinement"
    tips = _ITERATION_TIPS.get(
        iteration_type,
        "- Be clear about the goal\n- Give specific feedback\n- Reference existing components",
    )
    return _message(
        f"You are about to iterate on V0 chat {chat_id} ({iteration_type}).\n\n"
        f"## What to include\n{tips}\n\n"
        "## Calling create_message\n"
        "```json\n"
        f'{{"chatId": "{chat_id}", "message": "Your specific change request"}}\n'
        "```\n\n"
        "Change one thing at a time for complex modifications, then review the result "
        "with get_chat_by_id or list_files."
    )


def _organize_chats_prompt(args: Mapping[str, Any]) -> Dict[str, Any]:
    action = args.get("action") or "organize"
    closing = {
        "list": "Start by calling find_chats to see all of your chats.",
        "search": "Call find_chats with limit/offset/isFavorite filters to narrow the list.",
        "favorite": "Call favorite_chat to mark the chats you are actively working on.",
    }.get(action, "Begin with find_chats to review how your chats are organized today.")
    return _message(
        "## Organizing V0 chats\n\n"
        "- List chats: find_chats with {\"limit\": \"20\", \"offset\": \"0\"}\n"
        "- Only favorites: find_chats with {\"isFavorite\": \"true\"}\n"
        "- Mark a chat: favorite_chat with {\"chatId\": \"...\", \"isFavorite\": true}\n"
        "- Unfavorite finished work to keep the favorites list short\n\n"
        f"{closing}"
    )


def _project_setup_prompt(args: Mapping[str, Any]) -> Dict[str, Any]:
    project_name = args.get("project_name") or "My V0 Project"
    framework = args.get("framework") or "React"
    return _message(
        f'Setting up the V0 project "{project_name}" with {framework}.\n\n'
        "## 1. Create the project\n"
        "```json\n"
        f'{{"name": "{project_name}", "description": "A {framework} project built with V0"}}\n'
        "```\n\n"
        "## 2. Start chats inside it\n"
        "Pass the returned project id as projectId to create_chat, or seed a chat from "
        "existing sources with init_chat.\n\n"
        f"## 3. Conventions for {framework}\n"
        "- Keep components small and typed\n"
        "- Build responsive layouts from the start\n"
        "- Follow accessibility guidelines"
    )


def _workflow_optimization_prompt(args: Mapping[str, Any]) -> Dict[str, Any]:
    use_case = args.get("use_case") or "general development"
    return _message(
        f"## Optimizing a V0 workflow for {use_case}\n\n"
        "- Use a focused system prompt in create_chat to set conventions once\n"
        "- Iterate with short, specific create_message calls\n"
        "- Pull generated files with list_files or read them as MCP resources\n"
        "- Favorite active chats so find_chats stays manageable\n"
        "- Group related chats under a project with create_project"
    )


def _troubleshooting_prompt(args: Mapping[str, Any]) -> Dict[str, Any]:
    issue_type = args.get("issue_type") or "general"
    tips = _TROUBLESHOOTING_TIPS.get(
        issue_type,
        "- Check get_user_info to confirm authentication\n"
        "- Inspect the chat with get_chat_by_id\n"
        "- Retry after a short wait if the API reports rate limiting",
    )
    return _message(f"## Troubleshooting V0 ({issue_type})\n\n{tips}")


PROMPT_GENERATORS: Dict[str, Callable[[Mapping[str, Any]], Dict[str, Any]]] = {
    "create_v0_chat": _create_chat_prompt,
    "iterate_v0_chat": _iterate_chat_prompt,
    "organize_v0_chats": _organize_chats_prompt,
    "v0_project_setup": _project_setup_prompt,
    "v0_workflow_optimization": _workflow_optimization_prompt,
    "v0_troubleshooting": _troubleshooting_prompt,
}


def get_prompt_content(name: str, args: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """
    Returns one prompt message ({"role", "content"}).

    Raises:
        KeyError: If the prompt name is unknown
    """
    generator = PROMPT_GENERATORS.get(name)
    if generator is None:
        raise KeyError(f"Unknown prompt: {name}")
    return generator(args or {})
