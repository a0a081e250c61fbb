from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from assistant.errors import StartupResourceError


logger = logging.getLogger("aicodehelper.prompt")


def load_system_prompt(path: Union[str, Path]) -> str:
    """Read the system prompt shared by every conversation.

    Runs once at service construction; any read failure aborts startup.
    """
    prompt_path = Path(path)
    try:
        text = prompt_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise StartupResourceError(f"Failed to read system prompt from {prompt_path}: {exc}") from exc

    text = text.strip()
    if not text:
        raise StartupResourceError(f"System prompt file {prompt_path} is empty")

    logger.info("Loaded system prompt from %s (%s chars)", prompt_path, len(text))
    return text
