"""Unified runtime configuration and prompt loader.

Combines:
- Three-tier runtime config merge (system > user > project)
- Prompt .md parsing (YAML frontmatter + prompt body)

Configuration priority (highest to lowest):
1. CLI overrides
2. Project config (.bondi/runtime.json in workspace)
3. User config (~/.bondi/runtime.json)
4. System defaults (config/defaults/runtime.json)

Prompts follow the same order: project .bondi/prompts/ overrides
~/.bondi/prompts/, which overrides config/defaults/prompts/.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import yaml

from config.schema import BondiSettings
from config.types import PromptConfig

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Loader for runtime config and prompt definitions."""

    def __init__(self, workspace_root: str | Path | None = None):
        self.workspace_root = Path(workspace_root).resolve() if workspace_root else None
        self._system_defaults_dir = Path(__file__).parent / "defaults"
        self._prompts: dict[str, PromptConfig] = {}

    # ── Three-tier runtime config ──

    def load(self, cli_overrides: dict[str, Any] | None = None) -> BondiSettings:
        """Load runtime configuration with three-tier merge."""
        system_config = self._load_system_defaults()
        user_config = self._load_user_config()
        project_config = self._load_project_config()

        final_config = self._deep_merge(system_config, user_config, project_config)

        # Provider chains are ordered lists: the most specific tier replaces the whole chain
        providers = self._lookup_provider_chain(project_config, user_config, system_config)
        if providers is not None:
            final_config.setdefault("gateway", {})["providers"] = providers

        if cli_overrides:
            final_config = self._deep_merge(final_config, cli_overrides)

        final_config = self._expand_env_vars(final_config)
        final_config = self._remove_none_values(final_config)

        return BondiSettings(**final_config)

    # ── Prompt .md parsing ──

    def load_all_prompts(self) -> dict[str, PromptConfig]:
        """Load all prompts by priority (low -> high, later overrides earlier)."""
        self._prompts = {}

        # 1. Built-in prompts (lowest priority)
        self._load_prompts_from_dir(self._system_defaults_dir / "prompts")

        # 2. User-level prompts
        self._load_prompts_from_dir(Path.home() / ".bondi" / "prompts")

        # 3. Project-level prompts
        if self.workspace_root:
            self._load_prompts_from_dir(self.workspace_root / ".bondi" / "prompts")

        return self._prompts

    def _load_prompts_from_dir(self, dir_path: Path) -> None:
        """Load all .md files from a directory."""
        if not dir_path.exists():
            return
        for md_file in sorted(dir_path.glob("*.md")):
            prompt = self.parse_prompt_file(md_file)
            if prompt:
                self._prompts[prompt.name] = prompt

    @staticmethod
    def parse_prompt_file(path: Path) -> PromptConfig | None:
        """Parse Markdown file with YAML frontmatter into PromptConfig."""
        try:
            content = path.read_text(encoding="utf-8")
        except OSError:
            return None

        if not content.startswith("---"):
            return None
        parts = content.split("---", 2)
        if len(parts) < 3:
            return None

        try:
            fm = yaml.safe_load(parts[1])
        except yaml.YAMLError:
            logger.warning("Invalid frontmatter in prompt file %s", path)
            return None

        if not fm or "name" not in fm:
            return None

        return PromptConfig(
            name=fm["name"],
            description=fm.get("description", ""),
            role=fm.get("role", "system"),
            text=parts[2].strip(),
            source_dir=path.resolve().parent,
        )

    def get_prompt(self, name: str) -> PromptConfig | None:
        """Get a specific prompt by name."""
        if not self._prompts:
            self.load_all_prompts()
        return self._prompts.get(name)

    # ── Internal helpers ──

    def _load_system_defaults(self) -> dict[str, Any]:
        """Load system defaults from runtime.json."""
        return self._load_json(self._system_defaults_dir / "runtime.json")

    def _load_user_config(self) -> dict[str, Any]:
        """Load user config from ~/.bondi/runtime.json."""
        return self._load_json(Path.home() / ".bondi" / "runtime.json")

    def _load_project_config(self) -> dict[str, Any]:
        """Load project config from .bondi/runtime.json."""
        if not self.workspace_root:
            return {}
        return self._load_json(self.workspace_root / ".bondi" / "runtime.json")

    @staticmethod
    def _load_json(path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError):
            logger.warning("Ignoring unreadable config file %s", path)
            return {}

    def _deep_merge(self, *dicts: dict[str, Any]) -> dict[str, Any]:
        """Deep merge multiple dictionaries. Later dicts override earlier ones."""
        result: dict[str, Any] = {}
        for d in dicts:
            for key, value in d.items():
                if key not in result:
                    result[key] = value
                elif value is None:
                    continue
                elif isinstance(value, dict) and isinstance(result[key], dict):
                    result[key] = self._deep_merge(result[key], value)
                else:
                    result[key] = value
        return result

    @staticmethod
    def _lookup_provider_chain(*configs: dict[str, Any]) -> list[Any] | None:
        """Lookup strategy: first tier that defines gateway.providers wins."""
        for config in configs:
            gateway = config.get("gateway")
            if isinstance(gateway, dict) and gateway.get("providers") is not None:
                return gateway["providers"]
        return None

    def _expand_env_vars(self, obj: Any) -> Any:
        """Recursively expand ${VAR} and ~ in string values."""
        if isinstance(obj, dict):
            return {k: self._expand_env_vars(v) for k, v in obj.items()}
        if isinstance(obj, list):
            return [self._expand_env_vars(v) for v in obj]
        if isinstance(obj, str):
            return os.path.expandvars(os.path.expanduser(obj))
        return obj

    def _remove_none_values(self, obj: Any) -> Any:
        """Recursively remove None values to allow Pydantic defaults."""
        if isinstance(obj, dict):
            return {k: self._remove_none_values(v) for k, v in obj.items() if v is not None}
        if isinstance(obj, list):
            return [self._remove_none_values(v) for v in obj if v is not None]
        return obj


def load_config(
    workspace_root: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> BondiSettings:
    """Convenience function to load runtime configuration."""
    return ConfigLoader(workspace_root=workspace_root).load(cli_overrides=cli_overrides)
