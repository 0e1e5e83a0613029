"""Command parser for CLI input."""

import shlex

from cli.constants import DOWNLOAD_FLAGS, UPLOAD_FLAGS
from cli.models import (
    CommandRequest,
    DeleteFileCommand,
    DeleteResumableCommand,
    DownloadCommand,
    FilesCommand,
    ResumablesCommand,
    UploadCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    return parse_tokens(tokens)


def parse_tokens(tokens: list[str]) -> CommandRequest:
    """Parse already split arguments (REPL line or process argv)."""
    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0]

    if command_name == "upload":
        return _parse_upload(tokens[1:])
    elif command_name == "download":
        return _parse_download(tokens[1:])
    elif command_name == "files":
        return _parse_files(tokens[1:])
    elif command_name == "resumables":
        return _parse_resumables(tokens[1:])
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _split_flags(args: list[str], allowed: tuple[str, ...], command: str) -> tuple[list[str], set[str]]:
    """Separate --flags from positional arguments."""
    positional = []
    flags = set()
    for arg in args:
        if arg.startswith("--"):
            if arg not in allowed:
                raise ParseError(f"{command}: unknown option {arg}")
            flags.add(arg)
        else:
            positional.append(arg)
    return positional, flags


def _parse_upload(args: list[str]) -> UploadCommand:
    """Parse 'upload <path> [--resume] [--direct]' command."""
    positional, flags = _split_flags(args, UPLOAD_FLAGS, "upload")
    if len(positional) != 1:
        raise ParseError("upload requires exactly 1 path: upload <path> [--resume] [--direct]")

    return UploadCommand(path=positional[0], resume="--resume" in flags, direct="--direct" in flags)


def _parse_download(args: list[str]) -> DownloadCommand:
    """Parse 'download <file_name> [--direct]' command."""
    positional, flags = _split_flags(args, DOWNLOAD_FLAGS, "download")
    if len(positional) != 1:
        raise ParseError("download requires exactly 1 argument: <file_name> [--direct]")

    return DownloadCommand(file_name=positional[0], direct="--direct" in flags)


def _parse_files(args: list[str]) -> FilesCommand | DeleteFileCommand:
    """Parse 'files [--outbox]' and 'files delete <file_name>' commands."""
    if args and args[0] == "delete":
        if len(args) != 2:
            raise ParseError("files delete requires exactly 1 argument: <file_name>")
        return DeleteFileCommand(file_name=args[1])

    positional, flags = _split_flags(args, ("--outbox", "--inbox"), "files")
    if positional:
        raise ParseError(f"files: unexpected argument {positional[0]}")
    if "--outbox" in flags and "--inbox" in flags:
        raise ParseError("files: choose either --inbox or --outbox")

    return FilesCommand(outbox="--outbox" in flags)


def _parse_resumables(args: list[str]) -> ResumablesCommand | DeleteResumableCommand:
    """Parse 'resumables' and 'resumables delete <upload_id>' commands."""
    if not args:
        return ResumablesCommand()
    if args[0] == "delete" and len(args) == 2:
        return DeleteResumableCommand(upload_id=args[1])
    raise ParseError("usage: resumables | resumables delete <upload_id>")
