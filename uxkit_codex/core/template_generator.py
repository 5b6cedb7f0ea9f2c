"""Template Generator - Writes the Codex CLI instruction file and research prompts.

Layout produced under the configured template_path:

    codex.md
    .codex/README.md
    .codex/prompts/<command>.md
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from uxkit_codex.config.config_loader import IntegrationConfig
from uxkit_codex.config.template_manager import TemplateManager

logger = logging.getLogger(__name__)

CODEX_DIR_NAME = ".codex"
PROMPTS_DIR_NAME = "prompts"
INSTRUCTIONS_FILENAME = "codex.md"

DEFAULT_PROMPTS: Dict[str, str] = {
    "research-questions": "Generate research questions for a study.",
    "research-sources": "Collect and organize research sources for a study.",
    "research-summarize": "Summarize a source or interview into key findings.",
    "research-interview": "Process an interview transcript into structured notes.",
    "research-synthesize": "Synthesize study findings into insights and recommendations.",
}


class CommandTemplateGenerator:
    """Generates the files the Codex CLI reads for the research commands."""

    def __init__(
        self,
        template_manager: Optional[TemplateManager] = None,
        prompts: Optional[Dict[str, str]] = None,
    ) -> None:
        """Initialize template generator.

        Args:
            template_manager: Source of template text (if None, bundled templates
                with overrides from <template_path>/.uxkit/templates/)
            prompts: Command name to description (DEFAULT_PROMPTS if None)
        """
        self.template_manager = template_manager
        self.prompts = dict(prompts if prompts is not None else DEFAULT_PROMPTS)

    async def generate_templates(self, config: IntegrationConfig) -> None:
        """Write codex.md, .codex/README.md and every prompt file.

        Args:
            config: Integration settings; template_path is the output root

        Raises:
            OSError: If a directory or file cannot be written
            KeyError: If a template references an unknown variable
        """
        await asyncio.to_thread(self._write_templates, config)

    def list_prompt_files(self, config: IntegrationConfig) -> List[Path]:
        """Paths of the prompt files generate_templates() writes, in order."""
        prompts_dir = self._prompts_dir(config)
        return [prompts_dir / f"{name}.md" for name in self.prompts]

    def _write_templates(self, config: IntegrationConfig) -> None:
        root = Path(config.template_path)
        manager = self._manager_for(root)
        prompts_dir = self._prompts_dir(config)
        prompts_dir.mkdir(parents=True, exist_ok=True)

        generated_at = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")

        prompt_list = "\n".join(
            f"- `/{name}` - {description}" for name, description in self.prompts.items()
        )
        self._write(
            root / INSTRUCTIONS_FILENAME,
            manager.render(
                "codex_md",
                project_name=root.resolve().name,
                prompt_list=prompt_list,
                generated_at=generated_at,
            ),
        )
        self._write(
            root / CODEX_DIR_NAME / "README.md",
            manager.render(
                "readme",
                generated_at=generated_at,
                template_path=config.template_path,
            ),
        )

        for prompt_path, (name, description) in zip(
            self.list_prompt_files(config), self.prompts.items()
        ):
            self._write(
                prompt_path,
                manager.render("prompt", name=name, description=description),
            )

        logger.info(
            f"Generated {len(self.prompts)} prompt(s) in {prompts_dir}"
        )

    def _manager_for(self, root: Path) -> TemplateManager:
        if self.template_manager is not None:
            return self.template_manager
        return TemplateManager.for_project(root)

    def _prompts_dir(self, config: IntegrationConfig) -> Path:
        return Path(config.template_path) / CODEX_DIR_NAME / PROMPTS_DIR_NAME

    def _write(self, path: Path, content: str) -> None:
        logger.debug(f"Writing {path}")
        path.write_text(content, encoding="utf-8")
