"""External command descriptors and the process executor.

Commands are built as structured data (program + argv + redirections) rather
than shell strings, so credential placeholders are substituted into individual
arguments and never re-parsed by a shell.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from contextlib import ExitStack
from dataclasses import dataclass, field, replace
from typing import Dict, List, Mapping, Optional, Tuple


logger = logging.getLogger(__name__)


def _substitute(value: str, replacements: Mapping[str, str]) -> str:
    for placeholder, actual in replacements.items():
        value = value.replace(placeholder, str(actual))
    return value


@dataclass(frozen=True)
class Command:
    """One external program invocation."""

    program: str
    args: Tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)
    stdin: Optional[str] = None
    stdout: Optional[str] = None
    append: bool = False

    def argv(self) -> List[str]:
        return [self.program, *self.args]

    def substitute(self, replacements: Mapping[str, str]) -> "Command":
        """Return a copy with `{placeholder}` tokens replaced everywhere."""
        return replace(
            self,
            program=_substitute(self.program, replacements),
            args=tuple(_substitute(arg, replacements) for arg in self.args),
            env={key: _substitute(value, replacements) for key, value in self.env.items()},
            stdin=_substitute(self.stdin, replacements) if self.stdin else self.stdin,
            stdout=_substitute(self.stdout, replacements) if self.stdout else self.stdout,
        )

    def display(self) -> str:
        parts = [f"{key}={shlex.quote(value)}" for key, value in self.env.items()]
        parts.append(shlex.join(self.argv()))
        if self.stdin:
            parts.append(f"< {shlex.quote(self.stdin)}")
        if self.stdout:
            parts.append(f"{'>>' if self.append else '>'} {shlex.quote(self.stdout)}")
        return " ".join(parts)

    def __str__(self) -> str:
        return self.display()


@dataclass
class CommandResult:
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def successful(self) -> bool:
        return self.returncode == 0

    def error_output(self, default: str = "Unknown error") -> str:
        return self.stderr.strip() or self.stdout.strip() or default


class CommandExecutor:
    """Runs commands synchronously, without a timeout."""

    def run(self, command: Command) -> CommandResult:
        env: Dict[str, str] = os.environ.copy()
        env.update(command.env)

        logger.debug("command_start | program=%s args=%s", command.program, len(command.args))

        with ExitStack() as stack:
            stdin = stack.enter_context(open(command.stdin, "rb")) if command.stdin else subprocess.DEVNULL
            if command.stdout:
                stdout = stack.enter_context(open(command.stdout, "ab" if command.append else "wb"))
            else:
                stdout = subprocess.PIPE
            try:
                proc = subprocess.run(
                    command.argv(),
                    stdin=stdin,
                    stdout=stdout,
                    stderr=subprocess.PIPE,
                    env=env,
                    check=False,
                )
            except OSError as exc:
                logger.error("command_exec_error | program=%s error=%s", command.program, exc)
                return CommandResult(returncode=127, stderr=str(exc))

        captured = proc.stdout.decode(errors="ignore") if isinstance(proc.stdout, bytes) else ""
        result = CommandResult(
            returncode=proc.returncode,
            stdout=captured,
            stderr=(proc.stderr or b"").decode(errors="ignore"),
        )
        if not result.successful:
            logger.warning(
                "command_failed | program=%s returncode=%s error=%s",
                command.program,
                result.returncode,
                result.error_output(),
            )
        return result

    def which(self, program: str) -> Optional[str]:
        """Resolve an executable for availability pre-flight checks."""
        return shutil.which(program)
