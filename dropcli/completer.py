"""Custom completer for the KISSDrop CLI with local file completion."""

from pathlib import Path
from typing import Iterable

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from dropcli.constants import COMMANDS


class DropCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - Local path completion for the 'upload' command
    """

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        if tokens[0].lower() != "upload":
            return

        current_word = "" if is_typing_new_token else tokens[-1]
        if current_word.startswith("-"):
            return
        yield from self._complete_paths(current_word)

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        """Complete command names matching the partial input."""
        partial_lower = partial.lower()
        for cmd in COMMANDS:
            if cmd.startswith(partial_lower):
                yield Completion(cmd, start_position=-len(partial))

    def _complete_paths(self, partial: str) -> Iterable[Completion]:
        """
        Complete entries of the directory named by the partial path.

        Directories are suggested with a trailing slash; hidden entries only
        when the partial name starts with a dot.
        """
        if "/" in partial:
            head, _, prefix = partial.rpartition("/")
            directory = Path(head or "/").expanduser()
            base = head + "/"
        else:
            directory = Path.cwd()
            prefix = partial
            base = ""

        if not directory.is_dir():
            return

        try:
            entries = sorted(directory.iterdir())
        except OSError:
            return

        for entry in entries:
            if not entry.name.startswith(prefix):
                continue
            if entry.name.startswith(".") and not prefix.startswith("."):
                continue
            suffix = "/" if entry.is_dir() else ""
            yield Completion(base + entry.name + suffix, start_position=-len(partial))
