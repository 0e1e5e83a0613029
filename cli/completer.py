"""Custom completer for LEGA Commander with local path completion."""

from pathlib import Path
from typing import Iterable

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cli.constants import COMMANDS, DOWNLOAD_FLAGS, UPLOAD_FLAGS


class LegaCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - Local path and flag completion for the 'upload' command
    - Flag completion for the 'download' command
    """

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        """
        Generate completions based on cursor position and context.
        """
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        command = tokens[0].lower()
        current_word = "" if is_typing_new_token else tokens[-1]

        if command == "upload":
            if current_word.startswith("-"):
                yield from self._complete_flags(current_word, UPLOAD_FLAGS, tokens)
            else:
                yield from self._complete_paths(current_word)
        elif command == "download" and current_word.startswith("-"):
            yield from self._complete_flags(current_word, DOWNLOAD_FLAGS, tokens)

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        """Complete command names matching the partial input."""
        partial_lower = partial.lower()
        for cmd in COMMANDS:
            if cmd.startswith(partial_lower):
                yield Completion(cmd, start_position=-len(partial))

    def _complete_flags(
        self, partial: str, flags: tuple[str, ...], tokens: list[str]
    ) -> Iterable[Completion]:
        """Complete flags not already present on the line."""
        for flag in flags:
            if flag.startswith(partial) and flag not in tokens[1:-1]:
                yield Completion(flag, start_position=-len(partial))

    def _complete_paths(self, partial: str) -> Iterable[Completion]:
        """
        Complete local files and directories relative to the working directory.
        """
        base = Path(partial).expanduser()
        if partial.endswith("/"):
            directory, prefix = base, ""
        else:
            directory, prefix = base.parent, base.name

        search_dir = directory if directory.is_absolute() else Path.cwd() / directory
        if not search_dir.is_dir():
            return

        shown_dir = "" if str(directory) == "." and not partial.startswith("./") else str(directory).rstrip("/") + "/"
        for item in sorted(search_dir.iterdir()):
            if not item.name.startswith(prefix):
                continue
            if item.name.startswith(".") and not prefix.startswith("."):
                continue
            suffix = "/" if item.is_dir() else ""
            yield Completion(f"{shown_dir}{item.name}{suffix}", start_position=-len(partial))
