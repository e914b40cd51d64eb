import argparse
import logging
import os
import sys

from shell_backend import SHUTDOWN_NOTICE, ShellBackend, ShellExit

logger = logging.getLogger("ShellCLI")

BANNER = """\
+-----------------------------------------------------------+
|                                                           |
|              Minish v1.0.0 - POSIX Compatible             |
|                                                           |
|  Type 'help' for commands, 'exit' to quit                 |
|                                                           |
+-----------------------------------------------------------+
"""


def repl(tb=None, stdin=None, stdout=None, banner=True):
    """Prompt, read a line, dispatch it, repeat until exit or end of input."""
    tb = tb or ShellBackend()
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    if banner:
        stdout.write(BANNER + "\n")
    while True:
        stdout.write(tb.prompt)
        stdout.flush()
        try:
            s = stdin.readline()
        except (OSError, UnicodeDecodeError) as e:
            logger.info("read failed, leaving: %s", e)
            break
        except KeyboardInterrupt:
            stdout.write("\n")
            break
        if not s:
            # end of input; finish the prompt line
            stdout.write("\n")
            break
        # a child spawned by this line writes straight to the terminal
        stdout.flush()
        try:
            out = tb.execute(s)
        except ShellExit:
            break
        if out:
            stdout.write(out)
            stdout.flush()
    stdout.write(SHUTDOWN_NOTICE + "\n")
    stdout.flush()
    logger.info("Session ended")


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def log_level(value):
    level = value.upper()
    if level not in LOG_LEVELS:
        raise argparse.ArgumentTypeError(f"invalid log level: {value!r}")
    return level


def main(argv=None):
    parser = argparse.ArgumentParser(prog="minish", description="Minimal interactive shell.")
    parser.add_argument("--no-banner", action="store_true", help="do not print the startup banner")
    parser.add_argument(
        "--log-level",
        type=log_level,
        default=os.environ.get("MINISH_LOG_LEVEL", "WARNING"),
        help="logging level for stderr diagnostics, one of %s (default: %%(default)s)" % ", ".join(LOG_LEVELS),
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level)
    repl(banner=not args.no_banner)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
