"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["upload", "info", "unlock", "download", "server", "clear", "exit", "help"]

STYLE = Style.from_dict(
    {
        "prompt": "#2BB673 bold",
        "command": "#0088ff bold",
    }
)

MINT = "\033[38;2;43;182;115m"
GREEN = "\033[32m"
RESET = "\033[0m"

LOGO = f"""{MINT}
 _  _____ ____ ____  ____
| |/ /_ _/ ___/ ___||  _ \\ _ __ ___  _ __
| ' / | |\\___ \\___ \\| | | | '__/ _ \\| '_ \\
| . \\ | | ___) |__) | |_| | | | (_) | |_) |
|_|\\_\\___|____/____/|____/|_|  \\___/| .__/
                                    |_|
{RESET}"""

WELCOME_TITLE = "KISSDrop CLI - Simple file sharing"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "kissdrop> "

CHUNKED_UPLOAD_THRESHOLD = 10 * 1024 * 1024

EXPIRY_CHOICES = ("default", "never")

HELP_TEXT = """Available commands:
  upload <path> [--password P] [--expires N|never|default]
                                      Share a local file (large files upload in resumable chunks)
  info <share_id>                     Show share details
  unlock <share_id> <password>        Unlock a password-protected share for download
  download <share_id> [output_path]   Download a share (defaults to current directory)
  server [url]                        Show or set the server URL
  clear                               Clear screen and redisplay welcome message
  help                                Show this help
  exit                                Exit REPL

Examples:
  upload report.pdf
  upload backup.tar.gz --password s3cret --expires 7
  info aB3dE5fG
  unlock aB3dE5fG s3cret
  download aB3dE5fG downloads/"""
