# =============================================================================
# AI PULL REQUEST AGENT - PROMPT ATTACHMENTS
# =============================================================================
"""
Prompt Attachments

Inlines uploaded files into the code generation prompt.

Each file is classified before it is inlined:
    - binary (null byte, or >30% control bytes in the first 8000 bytes):
      noted by name only
    - text that is not strict UTF-8: noted by name only
    - text: inlined in a fenced block, truncated past MAX_INLINE_CHARS

Files appear in the prompt in the order they were uploaded.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence


logger = logging.getLogger(__name__)


BINARY_SAMPLE_SIZE = 8000
CONTROL_BYTE_RATIO = 0.3
MAX_INLINE_CHARS = 5_000_000
TRUNCATION_MARKER = "\n... (content truncated due to size)"

FILES_HEADER = "\n\n--- UPLOADED FILES ---\n"
FILES_FOOTER = (
    "\n--- END OF UPLOADED FILES ---\n\n"
    "Please consider the above files when implementing the requested changes."
)

# Whitespace control bytes that are normal in text files
_TEXT_CONTROL_BYTES = {0x09, 0x0A, 0x0D}


@dataclass
class AttachedFile:
    """An uploaded file: original name and raw bytes."""
    name: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


def is_binary(data: bytes) -> bool:
    """
    Heuristic binary detection on the first BINARY_SAMPLE_SIZE bytes.

    A null byte anywhere in the sample marks the file as binary; otherwise
    it is binary when more than 30% of the sample are control bytes other
    than tab, line feed and carriage return.
    """
    sample = data[:BINARY_SAMPLE_SIZE]
    if not sample:
        return False
    if b"\x00" in sample:
        return True

    control = sum(1 for byte in sample if byte < 32 and byte not in _TEXT_CONTROL_BYTES)
    return control / len(sample) > CONTROL_BYTE_RATIO


def decode_utf8_strict(data: bytes) -> Optional[str]:
    """
    Decode bytes as strict UTF-8.

    Returns None for invalid sequences, encoded surrogates, or text that
    already carries U+FFFD replacement characters.
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return None

    if "\ufffd" in text:
        return None
    return text


def describe_file(attached: AttachedFile) -> str:
    """Render one attachment as a prompt section."""
    if is_binary(attached.content):
        logger.info(f"Skipping binary file: {attached.name}")
        return f"\n**File: {attached.name}** (binary file - content not included)\n"

    text = decode_utf8_strict(attached.content)
    if text is None:
        logger.warning(f"Invalid UTF-8 content in file {attached.name}")
        return (
            f"\n**File: {attached.name}** "
            "(invalid UTF-8 encoding - content not included)\n"
        )

    if len(text) > MAX_INLINE_CHARS:
        text = text[:MAX_INLINE_CHARS] + TRUNCATION_MARKER

    logger.info(f"Added file content: {attached.name} ({attached.size} bytes)")
    return f"\n**File: {attached.name}**\n```\n{text}\n```\n"


def enhance_prompt(prompt: str, attached_files: Sequence[AttachedFile]) -> str:
    """
    Append uploaded files to a code generation prompt.

    Args:
        prompt: The user's change request
        attached_files: Uploaded files, in upload order

    Returns:
        The prompt unchanged when there are no files, otherwise the prompt
        followed by one section per file
    """
    if not attached_files:
        return prompt

    logger.info(f"Processing {len(attached_files)} uploaded files...")

    sections: List[str] = [prompt, FILES_HEADER]
    sections.extend(describe_file(attached) for attached in attached_files)
    sections.append(FILES_FOOTER)
    return "".join(sections)
