"""
Code generation: prompt attachments and the CLI invoker.
"""

from .attachments import (
    AttachedFile,
    decode_utf8_strict,
    enhance_prompt,
    is_binary,
)
from .invoker import (
    CodeGenerationError,
    CodeGenerationInvoker,
    CodegenCommand,
    DEFAULT_COMMANDS,
    sanitize_prompt,
)


__all__ = [
    "AttachedFile",
    "decode_utf8_strict",
    "enhance_prompt",
    "is_binary",
    "CodeGenerationError",
    "CodeGenerationInvoker",
    "CodegenCommand",
    "DEFAULT_COMMANDS",
    "sanitize_prompt",
]
