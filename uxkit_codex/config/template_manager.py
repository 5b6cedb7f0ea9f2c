"""Template manager for the files written for the Codex CLI.

Bundled templates live in uxkit_codex/config/templates/. A project may
override any of them by placing a file with the same name in its
.uxkit/templates/ directory; overrides are looked up first.
"""

from pathlib import Path
from string import Template
from typing import Any, Dict, List, Optional

TEMPLATE_SUFFIX = ".txt"
BUNDLED_TEMPLATES_DIR = Path(__file__).parent / "templates"
PROJECT_OVERRIDES_DIR = Path(".uxkit") / "templates"


class TemplateManager:
    """Finds, caches and renders string.Template files."""

    def __init__(
        self,
        templates_dir: Optional[Path] = None,
        overrides_dir: Optional[Path] = None,
    ) -> None:
        """Initialize template manager.

        Args:
            templates_dir: Directory of bundled templates (package templates if None)
            overrides_dir: Directory searched before templates_dir (no overrides if None)
        """
        self.templates_dir = Path(templates_dir or BUNDLED_TEMPLATES_DIR)
        self.overrides_dir = Path(overrides_dir) if overrides_dir else None
        self._template_cache: Dict[str, Template] = {}

    @classmethod
    def for_project(cls, project_root: Path) -> "TemplateManager":
        """Manager that honours <project_root>/.uxkit/templates/ overrides."""
        return cls(overrides_dir=Path(project_root) / PROJECT_OVERRIDES_DIR)

    def load_template(self, template_name: str) -> Template:
        """Load a template, preferring a project override.

        Raises:
            ValueError: If template_name is empty
            FileNotFoundError: If no directory has the template
        """
        if not template_name:
            raise ValueError("template_name cannot be empty")

        cached = self._template_cache.get(template_name)
        if cached is not None:
            return cached

        template_path = self.get_template_path(template_name)
        if not template_path.is_file():
            raise FileNotFoundError(
                f"Template not found: {template_path}. "
                f"Available templates: {self.list_templates()}"
            )

        template = Template(template_path.read_text(encoding="utf-8"))
        self._template_cache[template_name] = template
        return template

    def render(self, template_name: str, **variables: Any) -> str:
        """Render a template; every placeholder must be supplied.

        Raises:
            FileNotFoundError: If the template does not exist
            KeyError: If a placeholder has no value
        """
        try:
            return self.load_template(template_name).substitute(**variables)
        except KeyError as e:
            missing_var = str(e).strip("'")
            raise KeyError(
                f"Missing required variable '{missing_var}' for template '{template_name}'. "
                f"Provided variables: {sorted(variables)}"
            ) from e

    def render_safe(self, template_name: str, **variables: Any) -> str:
        """Render a template, leaving unknown $placeholders in place."""
        return self.load_template(template_name).safe_substitute(**variables)

    def list_templates(self) -> List[str]:
        """Names of every available template, overrides included, sorted."""
        names = set()
        for directory in self._search_dirs():
            if directory.is_dir():
                names.update(p.stem for p in directory.glob(f"*{TEMPLATE_SUFFIX}") if p.is_file())
        return sorted(names)

    def clear_cache(self) -> None:
        self._template_cache.clear()

    def get_template_path(self, template_name: str) -> Path:
        """Path the template is loaded from: the override if present, else bundled."""
        filename = f"{template_name}{TEMPLATE_SUFFIX}"
        if self.overrides_dir is not None:
            override = self.overrides_dir / filename
            if override.is_file():
                return override
        return self.templates_dir / filename

    def _search_dirs(self) -> List[Path]:
        if self.overrides_dir is None:
            return [self.templates_dir]
        return [self.overrides_dir, self.templates_dir]

