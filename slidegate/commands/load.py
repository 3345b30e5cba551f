"""slidegate load <lesson> — compile a lesson, validate it, output a Mermaid diagram."""
from __future__ import annotations

import sys
from pathlib import Path

from slidegate.compiler import format_errors, generate_mermaid, parse_lesson_yaml, validate_lesson


def cmd_load(lesson_name: str, cwd: str):
    project_dir = Path(cwd) / ".slidegate"
    lesson_path = project_dir / "lessons" / f"{lesson_name}.yaml"

    if not lesson_path.exists():
        print(f"Lesson file not found: {lesson_path}", file=sys.stderr)
        sys.exit(1)

    try:
        lesson = parse_lesson_yaml(lesson_path.read_text(encoding="utf-8"))
    except ValueError as e:
        print(f"✗ Parse error: {e}", file=sys.stderr)
        sys.exit(1)

    errors = validate_lesson(lesson)
    if any(e.level == "error" for e in errors):
        print(f'✗ Lesson "{lesson.name}" failed validation:')
        print(format_errors(errors))
        sys.exit(1)

    slides = {p for node in lesson.nodes.values() for p in node.content}
    print(f'✓ Lesson "{lesson.name}" compiled ({len(lesson.nodes)} nodes, {len(slides)} slides)')
    if errors:
        print(format_errors(errors))
    print()

    print("```mermaid")
    print(generate_mermaid(lesson))
    print("```")
    print()

    (project_dir / ".loaded").write_text(lesson_name, encoding="utf-8")
    print("Once the map looks correct, run: slidegate start")
