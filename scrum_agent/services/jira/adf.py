"""Conversion between markdown-ish text and Atlassian Document Format (ADF)."""

from typing import Any


def _paragraph(text: str) -> dict[str, Any]:
    return {"type": "paragraph", "content": [{"type": "text", "text": text}]}


def markdown_to_adf(markdown: str) -> dict[str, Any]:
    """Convert paragraphs and ``-``/``*`` bullet lists to an ADF document.

    Blank lines end a list and are otherwise dropped. Empty input yields a
    document with a single empty paragraph, which JIRA requires.
    """
    content: list[dict[str, Any]] = []
    current_list: dict[str, Any] | None = None

    for line in (markdown or "").split("\n"):
        stripped = line.strip()

        if stripped.startswith("- ") or stripped.startswith("* "):
            if current_list is None:
                current_list = {"type": "bulletList", "content": []}
            current_list["content"].append(
                {"type": "listItem", "content": [_paragraph(stripped[2:])]}
            )
            continue

        if current_list is not None:
            content.append(current_list)
            current_list = None
        if stripped:
            content.append(_paragraph(stripped))

    if current_list is not None:
        content.append(current_list)

    if not content:
        content.append(_paragraph(""))

    return {"type": "doc", "content": content}


def adf_to_text(description: Any) -> str:
    """Extract human-readable text from a JIRA description field.

    Plain strings (Server / older API) are returned unchanged. For ADF, text
    nodes are collected depth first, one line per block.
    """
    if description is None:
        return ""
    if isinstance(description, str):
        return description
    if not isinstance(description, dict):
        return str(description)

    def collect(node: dict[str, Any]) -> str:
        if node.get("type") == "text":
            return node.get("text", "")
        return "".join(collect(child) for child in node.get("content") or [])

    lines: list[str] = []
    for block in description.get("content") or []:
        if block.get("type") == "bulletList":
            lines.extend(
                f"- {collect(item)}" for item in block.get("content") or []
            )
        else:
            lines.append(collect(block))
    return "\n".join(lines)
