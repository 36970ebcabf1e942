"""
Module for managing external programs such as the BWT search and extension engines.
"""
from concurrent.futures import Future
from dataclasses import dataclass, fields
from pathlib import Path
from shlex import join as shell_join
from subprocess import Popen, PIPE, DEVNULL, TimeoutExpired
from typing import Callable, Optional, Union, BinaryIO
import logging

from kmerfetch import KmerfetchError
from kmerfetch.utils import Config
from kmerfetch.utils.resources import RESOURCES

logger = logging.getLogger(__name__)


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class ExternalToolFailure(KmerfetchError):
    """Raised when an external program is missing, times out or exits with a non-zero code."""
    def __init__(self, message: str, command: list[str] = None, returncode: int = None):
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode


# Classes --------------------------------------------------------------------------------------------------------------
@dataclass(slots=True, frozen=True, kw_only=True)
class ToolConfig(Config):
    """
    Options shared by every external program. Subclasses add fields that `_build_params` turns into flags;
    ``timeout`` and ``extra_args`` (a shell-quoted string appended verbatim) are handled by the caller.
    """
    timeout: Optional[float] = None
    extra_args: Optional[str] = None


class ExternalProgram:
    """
    Base class to handle an external program to be executed in subprocesses.

    Commands are always built as argument lists, never through a shell.
    Any non-zero exit is raised as `ExternalToolFailure` carrying the command.
    """
    _SKIP_PARAMS = frozenset(f.name for f in fields(ToolConfig))

    def __init__(self, program: str, timeout: float = None):
        if not (binary := RESOURCES.find_binary(program)):
            raise ExternalToolFailure(f'Could not find {program}', [program])
        self._program = program
        self._binary = binary
        self._timeout = timeout

    def __repr__(self): return f'{self._program}({self._binary})'

    @property
    def program(self) -> str: return self._program

    def _command(self, args: list) -> list[str]: return [str(self._binary)] + [str(i) for i in args]

    def _check(self, cmd: list[str], returncode: int, stderr: bytes):
        if returncode != 0:
            raise ExternalToolFailure(
                f"{self._program} failed (code {returncode}): {shell_join(cmd)}\n"
                f"{(stderr or b'').decode('utf-8', errors='replace').strip()}", cmd, returncode
            )

    def run(self, args: list, input_: bytes = None, stdout: Union[Path, BinaryIO] = None) -> tuple[bytes, bytes]:
        """
        Blocking execution; the caller waits for the program to exit.

        Args:
            args: Command line arguments (without the binary).
            input_: Optional bytes fed to stdin.
            stdout: Optional path or binary handle receiving the program's stdout instead of capturing it.

        Returns:
            Captured (stdout, stderr); stdout is empty when redirected.
        """
        cmd = self._command(args)
        logger.debug('Running %s', shell_join(cmd))
        sink = open(stdout, 'wb') if isinstance(stdout, (str, Path)) else stdout
        try:
            with Popen(cmd, stdin=PIPE if input_ is not None else DEVNULL, stdout=sink or PIPE, stderr=PIPE) as proc:
                try:
                    out, err = proc.communicate(input=input_, timeout=self._timeout)
                except TimeoutExpired:
                    proc.kill()
                    proc.communicate()
                    raise ExternalToolFailure(f"{self._program} timed out after {self._timeout}s: {shell_join(cmd)}", cmd)
        finally:
            if sink is not None and sink is not stdout: sink.close()
        self._check(cmd, proc.returncode, err)
        return out or b'', err

    def spawn(self, args: list) -> Popen:
        """Starts the program without waiting; the caller owns the join (see `TaskGroup.spawn`)."""
        cmd = self._command(args)
        logger.debug('Spawning %s', shell_join(cmd))
        return Popen(cmd, stdin=DEVNULL, stdout=DEVNULL, stderr=PIPE)

    def _build_params(self, config: Config) -> list[str]:
        params = []
        for field in fields(config):
            key = field.name
            if key in self._SKIP_PARAMS: continue
            val = getattr(config, key)
            if val is None or val is False: continue
            flag = f"-{key}" if len(key) == 1 else f"--{key.replace('_', '-')}"
            params.append(flag)
            if val is not True:
                params.append(str(val))
        return params


class TaskGroup:
    """
    Fan-out/fan-in barrier for independent work.

    Callables run on the shared thread pool and programs run as detached subprocesses;
    `join` waits for every member, reports all failures and raises the first one.
    A failing member never cancels its siblings.

    Examples:
        >>> with TaskGroup() as group:
        ...     group.submit(write_archive, ids_path)
        ...     group.spawn(ExternalProgram('gzip'), ['-f', side_file])
    """
    def __init__(self):
        self._members: list[tuple[str, Union[Future, tuple[Popen, ExternalProgram]]]] = []

    def __len__(self): return len(self._members)
    def __enter__(self): return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None: self.join()
        else:  # Still reap the members, but let the original exception propagate
            try: self.join()
            except Exception as e: logger.error('Task group member failed during unwinding: %s', e)

    def submit(self, func: Callable, *args, name: str = None, **kwargs) -> Future:
        future = RESOURCES.pool.submit(func, *args, **kwargs)
        self._members.append((name or getattr(func, '__name__', repr(func)), future))
        return future

    def spawn(self, program: ExternalProgram, args: list, name: str = None) -> Popen:
        proc = program.spawn(args)
        self._members.append((name or program.program, (proc, program)))
        return proc

    def join(self) -> list:
        """
        Waits for every member to complete.

        Returns:
            The results of all members in submission order (return codes for subprocesses).

        Raises:
            The first failure encountered, after every member has completed.
        """
        results, errors = [], []
        members, self._members = self._members, []
        for name, member in members:
            try:
                if isinstance(member, Future):
                    results.append(member.result())
                else:
                    proc, program = member
                    _, err = proc.communicate()
                    program._check(proc.args, proc.returncode, err)
                    results.append(proc.returncode)
            except Exception as e:
                logger.error('Task %s failed: %s', name, e)
                results.append(None)
                errors.append(e)
        if errors: raise errors[0]
        return results
