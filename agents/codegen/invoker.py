# =============================================================================
# AI PULL REQUEST AGENT - CODE GENERATION INVOKER
# =============================================================================
"""
Code Generation Invoker

Runs the provider's code generation CLI inside a working tree.

The CLI is a black box: it receives the prompt (stdin or argv), the API
key through an environment variable, and the working tree as its cwd.
It edits files in place and reports success through its exit status.

Supervision:
    - stdout and stderr are captured separately
    - the CLI runs in its own process group; a wall-clock timeout sends
      SIGTERM to the whole group, then SIGKILL after a grace period
    - a non-zero exit status or a timeout raises CodeGenerationError

The API key never appears on the command line.
"""

import logging
import os
import re
import shlex
import signal
import subprocess
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from agents.base.llm_client import AIProvider, LLMResponse, estimate_tokens


logger = logging.getLogger(__name__)


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass
class CodegenCommand:
    """
    How to launch one provider's code generation CLI.

    Attributes:
        argv: Executable and fixed arguments
        api_key_env: Environment variable that receives the API key
        prompt_via_stdin: Send the prompt on stdin (else as last argument)
        model_flag: Flag used to pass a model override
        reports_usage: Whether token usage should be estimated from text
    """
    argv: List[str]
    api_key_env: str
    prompt_via_stdin: bool = True
    model_flag: Optional[str] = "--model"
    reports_usage: bool = True

    def build_argv(self, prompt: str, model: Optional[str] = None) -> List[str]:
        argv = list(self.argv)
        if model and self.model_flag:
            argv.extend([self.model_flag, model])
        if not self.prompt_via_stdin:
            argv.append(prompt)
        return argv


@dataclass
class ProcessResult:
    """Captured output of a finished CLI process."""
    exit_code: int
    stdout: str
    stderr: str
    duration_seconds: float = 0.0


class CodeGenerationError(Exception):
    """The code generation CLI failed, could not start, or timed out."""

    def __init__(
        self,
        message: str,
        exit_code: Optional[int] = None,
        stderr: str = "",
        timed_out: bool = False,
    ):
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr
        self.timed_out = timed_out


DEFAULT_COMMANDS: Dict[AIProvider, CodegenCommand] = {
    AIProvider.ANTHROPIC: CodegenCommand(
        argv=["claude", "-p", "--dangerously-skip-permissions"],
        api_key_env="ANTHROPIC_API_KEY",
        prompt_via_stdin=True,
    ),
    AIProvider.OPENAI: CodegenCommand(
        argv=["codex", "-q", "-a", "auto-edit"],
        api_key_env="OPENAI_API_KEY",
        prompt_via_stdin=False,
        reports_usage=False,
    ),
}

# Keep CLIs non-interactive and colourless
CLI_ENVIRONMENT = {
    "CI": "true",
    "NODE_ENV": "production",
    "FORCE_COLOR": "0",
    "NO_COLOR": "1",
}

_LONE_SURROGATE = re.compile(r"[\ud800-\udfff]")


def sanitize_prompt(prompt: str) -> str:
    """Drop replacement characters and lone surrogates that cannot be encoded."""
    return _LONE_SURROGATE.sub("", prompt.replace("\ufffd", ""))


# =============================================================================
# INVOKER CLASS
# =============================================================================

class CodeGenerationInvoker:
    """
    Launches code generation CLIs with a hard timeout.

    Configuration:
        timeout: Wall-clock limit in seconds (default: 1000)
        terminate_grace: Seconds between SIGTERM and SIGKILL (default: 10)
        anthropic_command / openai_command: argv list or shell-style string
            replacing the default executable
    """

    DEFAULT_CONFIG = {
        "timeout": 1000,
        "terminate_grace": 10,
    }

    def __init__(
        self,
        config: Dict[str, Any] = None,
        commands: Optional[Dict[AIProvider, CodegenCommand]] = None,
    ):
        self.config = {**self.DEFAULT_CONFIG, **(config or {})}
        self.commands = dict(DEFAULT_COMMANDS)

        # "<provider>_command" entries replace the executable and fixed arguments
        for provider in (AIProvider.ANTHROPIC, AIProvider.OPENAI):
            argv = self.config.get(f"{provider.value}_command")
            if argv:
                if isinstance(argv, str):
                    argv = shlex.split(argv)
                self.commands[provider] = replace(self.commands[provider], argv=list(argv))

        self.commands.update(commands or {})

    def invoke(
        self,
        provider: AIProvider,
        api_key: str,
        prompt: str,
        working_directory: Path,
        model: Optional[str] = None,
    ) -> LLMResponse:
        """
        Run code generation for a prompt inside a working tree.

        Args:
            provider: Provider the API key belongs to
            api_key: Credential, passed through the environment only
            prompt: Prompt (already enhanced with attachments)
            working_directory: Working tree the CLI edits
            model: Optional model override

        Returns:
            LLMResponse with the CLI's stdout as content

        Raises:
            CodeGenerationError: On launch failure, timeout or non-zero exit
        """
        command = self.commands.get(provider)
        if command is None:
            raise CodeGenerationError(f"No code generation tool for provider {provider.value}")

        clean_prompt = sanitize_prompt(prompt)
        argv = command.build_argv(clean_prompt, model)
        env = {**os.environ, **CLI_ENVIRONMENT, command.api_key_env: api_key}

        logger.info(f"Running {argv[0]} in {working_directory}")
        result = self._run(
            argv,
            cwd=Path(working_directory),
            env=env,
            stdin_text=clean_prompt if command.prompt_via_stdin else None,
            timeout=self.config["timeout"],
        )

        if result.exit_code != 0:
            logger.error(
                f"{argv[0]} failed with exit code {result.exit_code}: "
                f"{result.stderr.strip()[:2000]}"
            )
            raise CodeGenerationError(
                f"{argv[0]} failed with exit code {result.exit_code}: {result.stderr.strip()}",
                exit_code=result.exit_code,
                stderr=result.stderr,
            )

        logger.info(f"{argv[0]} completed in {result.duration_seconds:.1f}s")

        if command.reports_usage:
            tokens_input = estimate_tokens(clean_prompt)
            tokens_output = estimate_tokens(result.stdout)
        else:
            tokens_input = tokens_output = 0

        return LLMResponse(
            content=result.stdout.strip(),
            model=model or argv[0],
            tokens_input=tokens_input,
            tokens_output=tokens_output,
        )

    def _run(
        self,
        argv: List[str],
        cwd: Path,
        env: Dict[str, str],
        stdin_text: Optional[str],
        timeout: float,
    ) -> ProcessResult:
        """Run a process to completion or until the deadline passes."""
        start = time.monotonic()
        try:
            process = subprocess.Popen(
                argv,
                cwd=cwd,
                env=env,
                stdin=subprocess.PIPE if stdin_text is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                start_new_session=True,
            )
        except OSError as e:
            raise CodeGenerationError(f"Failed to start process {argv[0]}: {e}") from e

        try:
            stdout, stderr = process.communicate(input=stdin_text, timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"{argv[0]} timed out after {timeout}s, terminating")
            stdout, stderr = self._terminate(process)
            raise CodeGenerationError(
                f"{argv[0]} timed out after {timeout} seconds",
                exit_code=process.returncode,
                stderr=stderr,
                timed_out=True,
            )

        return ProcessResult(
            exit_code=process.returncode,
            stdout=stdout or "",
            stderr=stderr or "",
            duration_seconds=time.monotonic() - start,
        )

    def _terminate(self, process: subprocess.Popen) -> tuple:
        """
        SIGTERM the process group, escalating to SIGKILL after the grace period.

        Every wait is bounded: if a descendant that left the group still
        holds the output pipes, they are closed and the output is dropped.
        """
        grace = self.config["terminate_grace"]

        _signal_group(process, signal.SIGTERM)
        try:
            stdout, stderr = process.communicate(timeout=grace)
            return stdout or "", stderr or ""
        except subprocess.TimeoutExpired:
            logger.warning(f"Process group {process.pid} ignored SIGTERM, killing")

        _signal_group(process, signal.SIGKILL)
        try:
            stdout, stderr = process.communicate(timeout=grace)
            return stdout or "", stderr or ""
        except subprocess.TimeoutExpired:
            logger.error(f"Output pipes of process {process.pid} still open, closing them")

        for pipe in (process.stdin, process.stdout, process.stderr):
            if pipe is not None:
                pipe.close()
        process.wait(timeout=grace)
        return "", ""


def _signal_group(process: subprocess.Popen, sig: int) -> None:
    """Send a signal to the process group led by ``process``."""
    try:
        os.killpg(process.pid, sig)
    except ProcessLookupError:
        logger.debug(f"Process group {process.pid} already exited")
    except PermissionError:
        process.send_signal(sig)
