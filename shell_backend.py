# shell_backend.py
import enum
import logging
import os
import re
import sys
from collections import namedtuple

import psutil

logger = logging.getLogger("ShellBackend")

DEFAULT_HOME = "/home/guest"
DEFAULT_IDENTITY = "guest"
SYSTEM_ID = "Minish 1.0.0 minish x86_64 minish-posix"
PLACEHOLDER_DATE = "[sh] 2026-01-05 00:00:00 UTC"
CLEAR_SCREEN = "\x1b[2J\x1b[1;1H"
SHUTDOWN_NOTICE = "[sh] Exiting shell..."


class ShellExit(Exception):
    """Raised by the exit/quit built-ins to end the command loop."""


WHITESPACE = re.compile(
    "[\t\n\x0b\x0c\r \x85\xa0\u1680\u2000-\u200a\u2028\u2029\u202f\u205f\u3000]+"
)


def tokenize(line):
    """Split a raw input line into whitespace-delimited words.

    Only Unicode White_Space characters separate words; the ASCII
    separator controls \\x1c-\\x1f stay inside a word.
    """
    return [word for word in WHITESPACE.split(line) if word]


class Session:
    def __init__(self, working_directory=DEFAULT_HOME, identity=DEFAULT_IDENTITY):
        self.working_directory = working_directory
        self.identity = identity

    def __repr__(self):
        return f"Session(working_directory={self.working_directory!r}, identity={self.identity!r})"


class Builtin(enum.Enum):
    EXIT = "exit"
    QUIT = "quit"
    HELP = "help"
    ECHO = "echo"
    PWD = "pwd"
    CD = "cd"
    LS = "ls"
    WHOAMI = "whoami"
    UNAME = "uname"
    DATE = "date"
    CLEAR = "clear"

    @classmethod
    def lookup(cls, name):
        """Return the built-in named exactly `name`, or None for external commands."""
        try:
            return cls(name)
        except ValueError:
            return None


# Result of an external command: exactly one of returncode / error is set.
ExternalResult = namedtuple("ExternalResult", ["returncode", "error"])


def run_external(name, args):
    """Spawn `name` with `args`, inheriting our stdio, and wait for it to finish."""
    # our own buffered output must reach the terminal before the child's
    sys.stdout.flush()
    try:
        proc = psutil.Popen([name] + list(args))
    except (OSError, ValueError) as e:
        # ValueError: argv the OS cannot accept, e.g. an embedded NUL
        logger.debug("launch of %r failed: %s", name, e)
        return ExternalResult(None, e)
    try:
        logger.debug("spawned pid %d (%s)", proc.pid, proc.name())
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
        logger.debug("spawned pid %d", proc.pid)
    returncode = proc.wait()
    logger.debug("pid %d exited with %s", proc.pid, returncode)
    return ExternalResult(returncode, None)


def describe_external(name, result):
    """Turn an ExternalResult into the diagnostic text to show, if any."""
    if result.error is not None:
        return f"[sh] command not found: {name}\n"
    if result.returncode == 0:
        return ""
    if result.returncode < 0:
        return f"[sh] command exited with status: signal {-result.returncode}\n"
    return f"[sh] command exited with status: {result.returncode}\n"


class ShellBackend:
    def __init__(self, home=DEFAULT_HOME, identity=DEFAULT_IDENTITY):
        self.home = home
        self.session = Session(home, identity)
        logger.info(f"Session started: home={home} identity={identity}")

    @property
    def prompt(self):
        return f"{self.session.identity}$ "

    # --- command handlers ---
    # Each handler takes (self, session, args) and returns the exact text to write.
    def cmd_exit(self, session, args):
        raise ShellExit()

    def cmd_help(self, session, args):
        output = ["Available commands:"]
        for usage, desc in self.HELP_LINES:
            output.append(f"  {usage:<13} - {desc}")
        return "\n".join(output) + "\n"

    def cmd_echo(self, session, args):
        if not args:
            return ""
        return " ".join(args) + "\n"

    def cmd_pwd(self, session, args):
        return session.working_directory + "\n"

    def cmd_cd(self, session, args):
        if not args:
            session.working_directory = self.home
            return ""
        target = args[0]
        # existence is enough; a plain file is accepted like a directory
        if os.path.exists(target):
            session.working_directory = target
            return ""
        return f"[sh] cd: {target}: No such file or directory\n"

    def cmd_ls(self, session, args):
        target = args[0] if args else session.working_directory
        try:
            with os.scandir(target) as it:
                names = []
                for entry in it:
                    try:
                        entry.name.encode("utf-8")
                    except UnicodeEncodeError:
                        continue
                    names.append(entry.name)
        except OSError as e:
            return f"[sh] ls: cannot open {target}: {e.strerror or e}\n"
        return "".join(name + "  " for name in names) + "\n"

    def cmd_whoami(self, session, args):
        return session.identity + "\n"

    def cmd_uname(self, session, args):
        return SYSTEM_ID + "\n"

    def cmd_date(self, session, args):
        return PLACEHOLDER_DATE + "\n"

    def cmd_clear(self, session, args):
        return CLEAR_SCREEN

    # mapping
    COMMANDS = {
        Builtin.EXIT: cmd_exit,
        Builtin.QUIT: cmd_exit,
        Builtin.HELP: cmd_help,
        Builtin.ECHO: cmd_echo,
        Builtin.PWD: cmd_pwd,
        Builtin.CD: cmd_cd,
        Builtin.LS: cmd_ls,
        Builtin.WHOAMI: cmd_whoami,
        Builtin.UNAME: cmd_uname,
        Builtin.DATE: cmd_date,
        Builtin.CLEAR: cmd_clear,
    }

    # Shown by `help`, in this order
    HELP_LINES = [
        ("help", "Show this help message"),
        ("echo [text]", "Print text"),
        ("pwd", "Print working directory"),
        ("cd [dir]", "Change directory"),
        ("ls [dir]", "List directory"),
        ("whoami", "Print current user"),
        ("uname", "Print system information"),
        ("date", "Print current date/time"),
        ("clear", "Clear screen"),
        ("exit/quit", "Exit shell"),
    ]

    def execute(self, raw_cmd):
        """Tokenize and run a single command line, returning the text to write.

        Raises ShellExit when the line asks the shell to stop.
        """
        parts = tokenize(raw_cmd)
        if not parts:
            return ""
        return self._run_command_parts(parts)

    def _run_command_parts(self, parts):
        cmd = parts[0]
        args = parts[1:]
        builtin = Builtin.lookup(cmd)
        if builtin is None:
            logger.debug("dispatch %r -> external", cmd)
            return describe_external(cmd, run_external(cmd, args))
        logger.debug("dispatch %r -> builtin", cmd)
        handler = self.COMMANDS[builtin]
        try:
            return handler(self, self.session, args)
        except ShellExit:
            raise
        except PermissionError as pe:
            return f"PermissionError: {pe}\n"
        except Exception as e:
            logger.exception("Error executing command")
            return f"Error: {e}\n"
