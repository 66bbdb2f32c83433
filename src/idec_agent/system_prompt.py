from __future__ import annotations

from collections.abc import Iterable

from idec_agent.tool import Tool

PLAN_SYSTEM_PROMPT = "You are a senior software architect. Create detailed, actionable plans for coding tasks."

_PLAN_SECTIONS = """\
Include:
1. **Overview**: Brief summary of the approach
2. **Steps**: Numbered list of specific tasks
3. **Files to Modify**: List of files that need changes
4. **Code Changes**: Key code snippets or pseudocode
5. **Testing**: How to verify the changes work
6. **Risks**: Potential issues and mitigations"""


def _describe_tool(tool: Tool) -> str:
    params = ", ".join(tool.input_schema.get("properties", {}))
    return f"- {tool.name}({params}): {tool.description}"


def build_agent_system_prompt(tools: Iterable[Tool], workspace_path: str | None = None) -> str:
    tool_lines = "\n".join(_describe_tool(t) for t in tools)
    prompt = f"""\
You are an autonomous coding agent with tool execution capabilities.

Available tools:
{tool_lines}

RULES:
1. When you need to perform ANY action, you MUST include the tool call XML in your response
2. Do NOT just describe what you would do - ACTUALLY call the tool
3. Call at most ONE tool per response, then wait for its result

Tool call format:
<tool>tool_name</tool>
<params>{{"param1": "value1"}}</params>

Examples:
<tool>list_files</tool>
<params>{{"path": "src"}}</params>

<tool>read_file</tool>
<params>{{"path": "package.json"}}</params>

<tool>write_file</tool>
<params>{{"path": "README.md", "content": "# Project Title\\n\\nUpdated content here..."}}</params>

<tool>create_file</tool>
<params>{{"path": "src/utils.js", "content": "export const add = (a, b) => a + b;\\n"}}</params>

Workflow:
1. Use tools to explore and understand the codebase
2. After receiving tool results, decide next steps
3. Use write_file to change existing files and create_file for new ones - ALWAYS include the full file content
4. When the task is done, answer in plain text without any tool call"""

    if workspace_path:
        prompt += f"""

The project folder is: {workspace_path}
Paths are resolved relative to it. Use "." for the project root."""

    return prompt


def plan_instructions(request: str) -> str:
    return f"Create a detailed implementation plan for: {request}\n\n{_PLAN_SECTIONS}"
