# tarotapp/services/llm/llm_utils.py
from typing import Any


class CompletionFormatError(ValueError):
    pass


def extract_completion_text(response: Any) -> str:
    """
    Returns the text of the first candidate, trimmed.

    Raises CompletionFormatError for anything else: no candidates, a
    candidate without text parts, or text that is empty once trimmed.
    """
    candidates = getattr(response, "candidates", None)
    if not candidates:
        raise CompletionFormatError("Response has no candidates")

    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None)
    if not parts:
        raise CompletionFormatError("First candidate has no content parts")

    texts = [part.text for part in parts if isinstance(getattr(part, "text", None), str)]
    if not texts:
        raise CompletionFormatError("First candidate has no text")

    text = "".join(texts).strip()
    if not text:
        raise CompletionFormatError("Response text is empty")
    return text
