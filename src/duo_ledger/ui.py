"""Interactive UI components for the operator CLI."""

import logging
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

logger = logging.getLogger(__name__)


def fuzzy_match(query: str, text: str) -> bool:
    """
    Fuzzy match: all characters in query must appear in order in text.

    Example:
        query="gro" matches "groceries"
        query="tpt" matches "transport"
    """
    query_idx = 0
    for char in text:
        if query_idx < len(query) and char == query[query_idx]:
            query_idx += 1
    return query_idx == len(query)


class CategoryCompleter(Completer):
    """Fuzzy search completer for expense categories."""

    def __init__(self, categories: list[str]):
        """Initialize the completer with available categories."""
        self.categories = sorted(set(categories))

    def get_completions(self, document: Document, complete_event: Any):
        """Get fuzzy-matched completions."""
        query = document.text.lower()

        for name in self.categories:
            if not query or fuzzy_match(query, name.lower()):
                yield Completion(
                    text=name,
                    start_position=-len(document.text),
                    display=name,
                )


def select_category_interactive(
    categories: list[str], default: str = ""
) -> str | None:
    """
    Prompt for a category with fuzzy completion.

    Free text is accepted too; unknown categories fall back to the default
    split until a rule is set for them.

    Returns:
        The entered category, or None if the user aborted (Ctrl+C / Ctrl+D)
    """
    print("   Type to search, press Enter to confirm, Ctrl+C to cancel\n")

    session: PromptSession[str] = PromptSession(completer=CategoryCompleter(categories))
    try:
        result = session.prompt("Category: ", default=default)
    except (KeyboardInterrupt, EOFError):
        logger.debug("Category selection aborted")
        return None

    result = result.strip()
    return result or None
