from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from .shell import PathLike, join, require_path

logger = logging.getLogger(__name__)

OUTPUT_INDENT = "    "
# LogRecord attribute marking a line of streamed child output.
CHILD_OUTPUT = "child_output"


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandError(RuntimeError):
    def __init__(self, result: CmdResult) -> None:
        self.result = result
        self.returncode = result.returncode
        detail = (result.stderr or "").strip()
        msg = f"Command failed ({result.returncode}): {join(result.argv)}"
        if detail:
            msg += f"\n{detail}"
        super().__init__(msg)


class CommandRunner:
    """Run external programs with consistent logging.

    - Programs get an argument vector, never an interpolated command line.
    - A non-zero exit status is returned, not raised, unless ``check=True``.
    - ``stream=True`` forwards child output to the log line by line,
      indented under the ``CMD`` line, instead of capturing it.
    """

    def run(
        self,
        argv: Sequence[str],
        *,
        check: bool = False,
        env: Mapping[str, str] | None = None,
        cwd: PathLike | None = None,
        input_text: str | None = None,
        stream: bool = False,
    ) -> CmdResult:
        argv_list = [os.fspath(a) for a in argv]
        if not argv_list:
            raise ValueError("empty argv")

        logger.info("CMD %s", join(argv_list))
        result = self._execute(
            argv_list,
            env=env,
            cwd=os.fspath(cwd) if cwd is not None else None,
            input_text=input_text,
            stream=stream,
        )

        if result.returncode != 0:
            logger.debug("EXIT %d %s", result.returncode, argv_list[0])
        if check and result.returncode != 0:
            raise CommandError(result)
        return result

    def run_shell(self, command_line: str, **kwargs) -> CmdResult:
        """Run a composed pipeline through ``sh -c``.

        Every dynamic part of ``command_line`` must already be quoted.
        """
        return self.run(["sh", "-c", command_line], **kwargs)

    def run_chroot(self, rootfs: PathLike, argv: Sequence[str], **kwargs) -> CmdResult:
        return self.run(["chroot", require_path(rootfs), *argv], **kwargs)

    def run_chroot_shell(self, rootfs: PathLike, command_line: str, **kwargs) -> CmdResult:
        return self.run_chroot(rootfs, ["sh", "-c", command_line], **kwargs)

    def _execute(
        self,
        argv: list[str],
        *,
        env: Mapping[str, str] | None,
        cwd: str | None,
        input_text: str | None,
        stream: bool,
    ) -> CmdResult:
        full_env = dict(os.environ, **(env or {}))

        if stream:
            return self._execute_streaming(argv, env=full_env, cwd=cwd, input_text=input_text)

        try:
            p = subprocess.run(
                argv,
                input=input_text,
                text=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=cwd,
                env=full_env,
            )
        except FileNotFoundError as e:
            logger.error("Command not found: %s", argv[0])
            return CmdResult(argv=argv, returncode=127, stdout="", stderr=str(e))

        if p.stdout:
            logger.debug("STDOUT %s", p.stdout.strip())
        if p.stderr:
            logger.debug("STDERR %s", p.stderr.strip())

        return CmdResult(argv=argv, returncode=p.returncode, stdout=p.stdout, stderr=p.stderr)

    def _execute_streaming(
        self,
        argv: list[str],
        *,
        env: Mapping[str, str],
        cwd: str | None,
        input_text: str | None,
    ) -> CmdResult:
        lines: list[str] = []
        try:
            proc = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE if input_text is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                cwd=cwd,
                env=dict(env),
            )
        except FileNotFoundError as e:
            logger.error("Command not found: %s", argv[0])
            return CmdResult(argv=argv, returncode=127, stdout="", stderr=str(e))

        with proc:
            if input_text is not None and proc.stdin is not None:
                proc.stdin.write(input_text)
                proc.stdin.close()
            assert proc.stdout is not None
            for line in proc.stdout:
                line = line.rstrip("\n")
                lines.append(line)
                logger.info("%s%s", OUTPUT_INDENT, line, extra={CHILD_OUTPUT: True})
            returncode = proc.wait()

        return CmdResult(argv=argv, returncode=returncode, stdout="\n".join(lines), stderr="")
