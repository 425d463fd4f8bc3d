from __future__ import annotations

import sys
import time
from pathlib import Path

import pytest

from agents.base.llm_client import AIProvider
from agents.codegen.invoker import (
    CodeGenerationError,
    CodeGenerationInvoker,
    CodegenCommand,
    DEFAULT_COMMANDS,
    sanitize_prompt,
)


WRITE_FROM_STDIN = (
    "import os, sys, pathlib\n"
    "prompt = sys.stdin.read()\n"
    "pathlib.Path('generated.txt').write_text(prompt)\n"
    "pathlib.Path('key.txt').write_text(os.environ['ANTHROPIC_API_KEY'])\n"
    "print('edited 1 file')\n"
)

WRITE_FROM_ARGV = (
    "import os, sys, pathlib\n"
    "pathlib.Path('generated.txt').write_text(sys.argv[-1])\n"
    "pathlib.Path('key.txt').write_text(os.environ['OPENAI_API_KEY'])\n"
)


def python_command(script: str, env: str = "ANTHROPIC_API_KEY", stdin: bool = True) -> CodegenCommand:
    return CodegenCommand(
        argv=[sys.executable, "-c", script],
        api_key_env=env,
        prompt_via_stdin=stdin,
        model_flag=None,
    )


def test_prompt_on_stdin_and_key_in_environment(tmp_path: Path) -> None:
    invoker = CodeGenerationInvoker(
        commands={AIProvider.ANTHROPIC: python_command(WRITE_FROM_STDIN)}
    )
    response = invoker.invoke(AIProvider.ANTHROPIC, "sk-ant-secret", "Add a README", tmp_path)

    assert (tmp_path / "generated.txt").read_text() == "Add a README"
    assert (tmp_path / "key.txt").read_text() == "sk-ant-secret"
    assert response.content == "edited 1 file"
    assert response.tokens_input > 0


def test_prompt_as_last_argument(tmp_path: Path) -> None:
    command = python_command(WRITE_FROM_ARGV, env="OPENAI_API_KEY", stdin=False)
    command.reports_usage = False
    invoker = CodeGenerationInvoker(commands={AIProvider.OPENAI: command})

    response = invoker.invoke(AIProvider.OPENAI, "sk-secret", "Fix the typo", tmp_path)

    assert (tmp_path / "generated.txt").read_text() == "Fix the typo"
    assert (tmp_path / "key.txt").read_text() == "sk-secret"
    assert response.total_tokens == 0


def test_non_zero_exit_carries_stderr(tmp_path: Path) -> None:
    script = "import sys\nsys.stderr.write('quota exceeded')\nsys.exit(3)\n"
    invoker = CodeGenerationInvoker(commands={AIProvider.ANTHROPIC: python_command(script)})

    with pytest.raises(CodeGenerationError) as excinfo:
        invoker.invoke(AIProvider.ANTHROPIC, "sk-ant-x", "anything", tmp_path)

    assert excinfo.value.exit_code == 3
    assert "quota exceeded" in excinfo.value.stderr
    assert excinfo.value.timed_out is False


def test_timeout_terminates_the_process(tmp_path: Path) -> None:
    script = "import time\ntime.sleep(30)\n"
    invoker = CodeGenerationInvoker(
        config={"timeout": 1, "terminate_grace": 2},
        commands={AIProvider.ANTHROPIC: python_command(script)},
    )

    started = time.monotonic()
    with pytest.raises(CodeGenerationError) as excinfo:
        invoker.invoke(AIProvider.ANTHROPIC, "sk-ant-x", "slow", tmp_path)

    assert excinfo.value.timed_out is True
    assert "timed out" in str(excinfo.value)
    assert time.monotonic() - started < 20


def test_timeout_also_stops_spawned_children(tmp_path: Path) -> None:
    # the grandchild inherits the output pipes and outlives the timeout
    script = (
        "import subprocess, sys, time\n"
        "subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(15)'])\n"
        "time.sleep(60)\n"
    )
    invoker = CodeGenerationInvoker(
        config={"timeout": 1, "terminate_grace": 1},
        commands={AIProvider.ANTHROPIC: python_command(script)},
    )

    started = time.monotonic()
    with pytest.raises(CodeGenerationError) as excinfo:
        invoker.invoke(AIProvider.ANTHROPIC, "sk-ant-x", "slow", tmp_path)

    assert excinfo.value.timed_out is True
    assert time.monotonic() - started < 8


def test_missing_executable(tmp_path: Path) -> None:
    command = CodegenCommand(argv=["no-such-codegen-cli-4f1c"], api_key_env="ANTHROPIC_API_KEY")
    invoker = CodeGenerationInvoker(commands={AIProvider.ANTHROPIC: command})

    with pytest.raises(CodeGenerationError, match="Failed to start process"):
        invoker.invoke(AIProvider.ANTHROPIC, "sk-ant-x", "anything", tmp_path)


def test_unknown_provider_has_no_tool(tmp_path: Path) -> None:
    with pytest.raises(CodeGenerationError):
        CodeGenerationInvoker().invoke(AIProvider.UNKNOWN, "x", "anything", tmp_path)


def test_command_override_from_config() -> None:
    invoker = CodeGenerationInvoker(config={"anthropic_command": "claude-beta -p --verbose"})
    command = invoker.commands[AIProvider.ANTHROPIC]
    assert command.argv == ["claude-beta", "-p", "--verbose"]
    assert command.api_key_env == "ANTHROPIC_API_KEY"
    assert invoker.commands[AIProvider.OPENAI] == DEFAULT_COMMANDS[AIProvider.OPENAI]


def test_model_flag_is_appended() -> None:
    argv = DEFAULT_COMMANDS[AIProvider.ANTHROPIC].build_argv("p", model="claude-opus-4-20250514")
    assert argv[-2:] == ["--model", "claude-opus-4-20250514"]
    assert "p" not in argv


def test_sanitize_prompt() -> None:
    assert sanitize_prompt("a\ufffdb\ud800c") == "abc"
