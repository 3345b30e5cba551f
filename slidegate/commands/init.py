"""Initialize a slidegate project.

Creates .slidegate/ and copies a lesson template into it.
"""
from __future__ import annotations

import shutil
from pathlib import Path

# Templates bundled with the package
TEMPLATES_DIR = Path(__file__).parent.parent / "templates"

TEMPLATES = {
    "nouns": ("nouns.yaml", "Noun quest (three hubs, intro slide, 38 slides)"),
    "minimal": ("minimal.yaml", "Two-branch fork and a wrap-up gate"),
}


def list_templates() -> list[tuple[str, str, str]]:
    """Return list of (key, filename, description) for available templates."""
    return [(k, v[0], v[1]) for k, v in TEMPLATES.items()]


def init_project(template: str | None = None, target_dir: Path | None = None) -> str:
    """Initialize a slidegate project.

    Args:
        template: Template key (nouns, minimal) or None for interactive
        target_dir: Target directory (default: current directory)

    Returns:
        Success message
    """
    target = target_dir or Path.cwd()
    project_dir = target / ".slidegate"
    lessons_dir = project_dir / "lessons"

    if project_dir.exists():
        return f"Already initialized: {project_dir} exists"

    if template is None:
        print("\nAvailable lesson templates:")
        templates = list_templates()
        for i, (key, _, desc) in enumerate(templates, 1):
            print(f"  {i}. {key}: {desc}")
        print()

        choice = input("Select template [1]: ").strip() or "1"
        try:
            idx = int(choice) - 1
            template = templates[idx][0] if 0 <= idx < len(templates) else "nouns"
        except ValueError:
            template = choice if choice in TEMPLATES else "nouns"

    if template not in TEMPLATES:
        available = ", ".join(TEMPLATES.keys())
        return f"Unknown template: {template}. Available: {available}"

    template_file = TEMPLATES_DIR / TEMPLATES[template][0]
    if not template_file.exists():
        return f"Template file not found: {template_file}"

    lessons_dir.mkdir(parents=True, exist_ok=True)
    shutil.copy(template_file, lessons_dir / TEMPLATES[template][0])

    return f"""Initialized slidegate project:
  {project_dir}/
  └── lessons/
      └── {TEMPLATES[template][0]}

Next steps:
  1. Run: slidegate load {template}
  2. Run: slidegate start
"""


def main(args: list[str]) -> int:
    template = args[0] if args else None
    result = init_project(template)
    print(result)
    return 1 if result.startswith(("Unknown", "Template file")) else 0
