"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["upload", "download", "files", "resumables", "clear", "exit", "help"]

STYLE = Style.from_dict(
    {
        "prompt": "#2E86C1 bold",
        "command": "#0088ff bold",
    }
)

BLUE = "\033[38;2;46;134;193m"
RESET = "\033[0m"

LOGO = f"""{BLUE}
 ██╗     ███████╗ ██████╗  █████╗
 ██║     ██╔════╝██╔════╝ ██╔══██╗
 ██║     █████╗  ██║  ███╗███████║
 ██║     ██╔══╝  ██║   ██║██╔══██║
 ███████╗███████╗╚██████╔╝██║  ██║
 ╚══════╝╚══════╝ ╚═════╝ ╚═╝  ╚═╝
{RESET}"""

WELCOME_TITLE = "LEGA Commander - LocalEGA submission client"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "lega> "

HELP_TEXT = """Available commands:
  upload <path> [--resume] [--direct]   Upload a Crypt4GH file, or every file in a directory
  download <file_name> [--direct]       Download a file from the outbox into the current directory
  files [--outbox]                      List files in the inbox (default) or the outbox
  files delete <file_name>              Delete a file from the inbox
  resumables                            List interrupted uploads that can be resumed
  resumables delete <upload_id>         Discard an interrupted upload
  clear                                 Clear screen and redisplay welcome message
  help                                  Show this help
  exit                                  Exit REPL

--resume continues an interrupted upload from the last chunk the server accepted.
--direct sends data straight to the TSD file API using a short-lived session token.
Examples:
  upload sample.txt.c4gh
  upload submissions/ --resume
  files --outbox
  download results.c4gh
  files delete sample.txt.c4gh"""

UPLOAD_FLAGS = ("--resume", "--direct")
DOWNLOAD_FLAGS = ("--direct",)
