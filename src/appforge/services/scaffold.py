"""Module scaffolding from small built-in templates."""

import os
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from appforge.errors import ExternalOperationError, ValidationError

MODULE_TYPES = ("helper", "plugin", "widget", "theme")

_TEMPLATES: Dict[str, Dict[str, str]] = {
    "helper": {
        "index.js": """/**
 * {title} helper
 */
const {identifier} = (...args) => {{
    return args;
}};

module.exports = {identifier};
""",
    },
    "plugin": {
        "plugin.js": """const PLUGIN = {{
    ID: '{slug}',
    name: '{title}',
    description: '',
    order: 100,
}};

Actinium.Plugin.register(PLUGIN, true);

Actinium.Hook.register('start', async () => {{
    if (!Actinium.Plugin.isActive(PLUGIN.ID)) return;
}});
""",
        "README.md": "# {title}\n\nPlugin `{slug}`.\n",
    },
    "widget": {
        "index.js": """export default function {identifier}(props) {{
    return null;
}}
""",
        "README.md": "# {title}\n\nWidget `{slug}`.\n",
    },
    "theme": {
        "style.scss": "// {title} theme\n\n$theme-name: '{slug}';\n",
        "README.md": "# {title}\n\nTheme `{slug}`.\n",
    },
}


@dataclass
class ScaffoldResult:
    target_dir: str
    created: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.strip().lower()).strip("-")
    return slug


class ScaffoldService:
    """Writes a fixed set of files for a module, never clobbering existing ones."""

    def __init__(self, logger, console, cwd: Optional[str] = None):
        self.logger = logger
        self.console = console
        self.cwd = cwd or os.getcwd()

    def default_base(self, module_type: str, core: bool) -> str:
        root = ".core" if core else os.path.join("src", "app")
        return os.path.join(self.cwd, root, f"{module_type}s")

    def create(
        self,
        module_type: str,
        name: str,
        path: Optional[str] = None,
        core: bool = False,
        overwrite: bool = False,
    ) -> ScaffoldResult:
        module_type = (module_type or "").lower()
        if module_type not in MODULE_TYPES:
            raise ValidationError(
                f"Unknown module type `{module_type}`. Use one of: {', '.join(MODULE_TYPES)}."
            )

        slug = slugify(name or "")
        if not slug:
            raise ValidationError(missing=["name"])

        base = path or self.default_base(module_type, core)
        result = ScaffoldResult(target_dir=os.path.join(base, slug))
        context = {
            "slug": slug,
            "title": " ".join(part.capitalize() for part in slug.split("-")),
            "identifier": "".join(part.capitalize() for part in slug.split("-")),
        }

        try:
            os.makedirs(result.target_dir, exist_ok=True)
            for file_name, template in _TEMPLATES[module_type].items():
                file_path = os.path.join(result.target_dir, file_name)
                if os.path.exists(file_path) and not overwrite:
                    self.logger.info("Skipping existing file %s", file_path)
                    result.skipped.append(file_path)
                    continue
                with open(file_path, "w", encoding="utf-8", newline="\n") as file_obj:
                    file_obj.write(template.format(**context))
                result.created.append(file_path)
        except OSError as exc:
            raise ExternalOperationError(f"Could not scaffold {module_type} `{slug}`: {exc}") from exc

        for file_path in result.created:
            self.console.print(f"[green]created:[/green] {file_path}")
        for file_path in result.skipped:
            self.console.print(f"[yellow]skipped (exists):[/yellow] {file_path}")
        return result
