# =============================================================================
# AI PULL REQUEST AGENT - MAIN ENTRY POINT
# =============================================================================
"""
Orchestrator Main Module

Command-line entry point. Loads configuration, sets up logging and runs
one workflow (or a helper command) per invocation.

Commands:
    run       Generate changes for a prompt and open a pull request
    branches  List the branches of a repository
    models    List the known models per AI provider

Results are printed to stdout as JSON; logs go to stderr.

Usage:
    ai-pr-agent run --prompt "Add a health check endpoint" \\
        --repo-url https://github.com/acme/widgets
    ai-pr-agent branches --repo-url https://github.com/acme/widgets
    ai-pr-agent --config config/orchestrator.yaml --debug models
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from agents.base.llm_client import AIProvider, AVAILABLE_MODELS
from agents.codegen.attachments import AttachedFile
from monitoring.logger import setup_logging
from monitoring.metrics import MetricsCollector
from orchestrator.engine.models import WorkflowRequest
from orchestrator.engine.workflow import create_workflow_orchestrator
from orchestrator.github.client import GitHubAPIError, GitHubClient
from orchestrator.github.repository import get_branches, parse_github_url

# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

DEFAULT_CONFIG_PATH = "config/orchestrator.yaml"

ENV_MAPPINGS = {
    # Credentials
    "API_KEY": ("llm", "default_api_key"),
    "GITHUB_TOKEN": ("github", "token"),
    # GitHub
    "GITHUB_API_URL": ("github", "api_url"),
    # LLM
    "LLM_ANTHROPIC_MODEL": ("llm", "anthropic_model"),
    "LLM_OPENAI_MODEL": ("llm", "openai_model"),
    # Code generation
    "CODEGEN_TIMEOUT": ("codegen", "timeout"),
    # Workspace
    "WORKSPACE_ROOT": ("workspace", "root"),
    # Logging
    "LOG_LEVEL": ("logging", "level"),
    "LOG_FORMAT": ("logging", "format"),
}

DEFAULTS: Dict[str, Dict[str, Any]] = {
    "github": {
        "token": "",
        "api_url": "https://api.github.com",
        "timeout": 30,
        "retry_count": 0,
        "default_base_branch": "main",
    },
    "llm": {
        "default_api_key": "",
        "anthropic_model": AVAILABLE_MODELS[AIProvider.ANTHROPIC][0],
        "openai_model": AVAILABLE_MODELS[AIProvider.OPENAI][0],
        "timeout": 60,
        "branch_max_tokens": 50,
        "description_max_tokens": 1024,
    },
    "codegen": {
        "timeout": 1000,
        "terminate_grace": 10,
    },
    "workspace": {
        "root": None,
        "clone_depth": 1,
        "git_timeout": 300,
        "author_name": "AI Pull Request Agent",
        "author_email": "ai-pr-agent@users.noreply.github.com",
    },
    "logging": {
        "level": "INFO",
        "format": "json",
        "log_file": None,
    },
}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file and environment variables.

    Environment variables override YAML values; defaults fill the rest.

    Args:
        config_path: Path to orchestrator.yaml

    Returns:
        Merged configuration dictionary
    """
    config: Dict[str, Any] = {}

    config_file = Path(config_path or DEFAULT_CONFIG_PATH)
    if config_file.exists():
        with open(config_file) as f:
            config = yaml.safe_load(f) or {}
        logger.info(f"Loaded config from {config_file}")
    elif config_path:
        logger.warning(f"Config file not found: {config_path}, using defaults")

    for env_var, (section, key) in ENV_MAPPINGS.items():
        value = os.environ.get(env_var)
        if value is not None:
            if section not in config or config[section] is None:
                config[section] = {}
            # Convert numeric strings
            if value.isdigit():
                value = int(value)
            config[section][key] = value

    for section, section_defaults in DEFAULTS.items():
        if config.get(section) is None:
            config[section] = {}
        for key, default_value in section_defaults.items():
            if key not in config[section]:
                config[section][key] = default_value

    return config


# =============================================================================
# COMMANDS
# =============================================================================


def read_attachments(paths: List[str]) -> List[AttachedFile]:
    """Read files named on the command line, keeping their order."""
    attached = []
    for path in paths or []:
        file_path = Path(path)
        attached.append(AttachedFile(name=file_path.name, content=file_path.read_bytes()))
    return attached


def cmd_run(args: argparse.Namespace, config: Dict[str, Any], metrics: MetricsCollector) -> int:
    """Run one workflow and print its result."""
    try:
        attached_files = read_attachments(args.file)
    except OSError as e:
        logger.error(f"Failed to read attached file: {e}")
        print(json.dumps({
            "success": False,
            "message": f"Failed to read attached file: {e}",
            "data": {},
        }, indent=2))
        return 1

    request = WorkflowRequest(
        prompt=args.prompt,
        api_key=args.api_key,
        repository_url=args.repo_url,
        github_token=args.github_token or config["github"].get("token", ""),
        target_branch=args.branch,
        attached_files=attached_files,
        model=args.model,
    )

    orchestrator = create_workflow_orchestrator(config, metrics=metrics)
    result = orchestrator.execute(request)

    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.success else 1


def cmd_branches(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """Print the branches of a repository."""
    identity = parse_github_url(args.repo_url)
    if identity is None:
        print(json.dumps({"success": False, "message": "Invalid GitHub URL format"}, indent=2))
        return 1

    token = args.github_token or config["github"].get("token", "")
    if not token:
        print(json.dumps({"success": False, "message": "GitHub token is required"}, indent=2))
        return 1

    github_config = config["github"]
    try:
        with GitHubClient(
            token=token,
            repo=identity.full_name,
            base_url=github_config.get("api_url"),
            timeout=github_config.get("timeout"),
            retry_count=github_config.get("retry_count", 0),
        ) as client:
            branches = get_branches(client)
    except GitHubAPIError as e:
        logger.error(f"Failed to get branches: {e}")
        print(json.dumps({"success": False, "message": f"Failed to get branches: {e}"}, indent=2))
        return 1

    print(json.dumps({
        "success": True,
        "message": "Branches fetched successfully",
        "data": {"branches": branches},
    }, indent=2))
    return 0


def cmd_models(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """Print the known models per provider."""
    print(json.dumps({
        "success": True,
        "message": "Available models retrieved successfully",
        "data": {
            provider.value: list(models) for provider, models in AVAILABLE_MODELS.items()
        },
    }, indent=2))
    return 0


# =============================================================================
# CLI ARGUMENT PARSING
# =============================================================================


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="ai-pr-agent",
        description="AI Pull Request Agent - prompt in, pull request out",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--config",
        default=None,
        help=f"Path to configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--metrics-file",
        default=None,
        help="Write Prometheus metrics to this file when done",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Generate changes and open a pull request")
    run.add_argument("--prompt", required=True, help="Description of the change")
    run.add_argument("--repo-url", required=True, help="https URL of the repository")
    run.add_argument("--branch", default=None, help="Existing branch to work on")
    run.add_argument(
        "--file",
        action="append",
        default=[],
        help="File to attach to the prompt (repeatable)",
    )
    run.add_argument("--model", default=None, help="Model override")
    run.add_argument("--api-key", default=None, help="AI API key (default: API_KEY env)")
    run.add_argument(
        "--github-token",
        default=None,
        help="GitHub token (default: GITHUB_TOKEN env)",
    )

    branches = subparsers.add_parser("branches", help="List repository branches")
    branches.add_argument("--repo-url", required=True, help="https URL of the repository")
    branches.add_argument(
        "--github-token",
        default=None,
        help="GitHub token (default: GITHUB_TOKEN env)",
    )

    subparsers.add_parser("models", help="List known models per provider")

    return parser.parse_args(argv)


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    config = load_config(args.config)

    log_config = config["logging"]
    setup_logging(
        level="DEBUG" if args.debug else str(log_config["level"]),
        fmt=log_config["format"],
        log_file=log_config.get("log_file"),
    )

    metrics = MetricsCollector()

    try:
        if args.command == "run":
            exit_code = cmd_run(args, config, metrics)
        elif args.command == "branches":
            exit_code = cmd_branches(args, config)
        else:
            exit_code = cmd_models(args, config)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        exit_code = 130
    finally:
        if args.metrics_file:
            metrics.write(args.metrics_file)

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
