from slidegate.compiler.mermaid import generate_mermaid
from slidegate.compiler.parser import parse_lesson_yaml
from slidegate.compiler.validator import format_errors, validate_lesson

__all__ = ["format_errors", "generate_mermaid", "parse_lesson_yaml", "validate_lesson"]
