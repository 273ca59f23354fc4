"""Type definitions for prompt files."""

from pathlib import Path

from pydantic import BaseModel


class PromptConfig(BaseModel):
    """Prompt parsed from a .md file (YAML frontmatter + body)."""

    name: str
    description: str = ""
    role: str = "system"
    text: str = ""
    source_dir: Path | None = None
