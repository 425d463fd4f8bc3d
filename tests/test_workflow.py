from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import pytest

from agents.base.llm_client import AIProvider
from agents.codegen.attachments import AttachedFile
from monitoring.metrics import MetricsCollector
from orchestrator.engine.models import WorkflowRequest
from orchestrator.engine.workflow import (
    MSG_API_KEY_REQUIRED,
    MSG_INVALID_API_KEY,
    MSG_INVALID_TOKEN,
    MSG_INVALID_URL,
    MSG_PROMPT_REQUIRED,
    MSG_TOKEN_REQUIRED,
    MSG_URL_REQUIRED,
    WorkflowOrchestrator,
)
from tests.conftest import (
    CodeGenerationError,
    FakeGitHubClient,
    FakeInvoker,
    FakeWorkingTree,
    GitError,
    make_pull,
    scripted_llm,
)


ANTHROPIC_KEY = "sk-ant-api03-testkey"
GITHUB_TOKEN = "ghp_testtoken1234567890"
REPO_URL = "https://github.com/acme/widgets"


class Harness:
    """Wires a WorkflowOrchestrator to in-memory fakes."""

    def __init__(
        self,
        tmp_path: Path,
        github: Optional[FakeGitHubClient] = None,
        replies: tuple = ("feat/add-health-check", "## Summary\nAdds a health check."),
        invoker: Optional[FakeInvoker] = None,
        tree: Optional[FakeWorkingTree] = None,
        config: Optional[dict] = None,
    ):
        self.github = github or FakeGitHubClient()
        self.invoker = invoker or FakeInvoker()
        self.tree = tree or FakeWorkingTree(tmp_path / "trees")
        self.metrics = MetricsCollector()
        self.github_factory_calls: List[tuple] = []
        self.llm_factory_calls: List[tuple] = []
        self.trees_built = 0
        self.replies = replies

        self.orchestrator = WorkflowOrchestrator(
            config=config or {},
            github_client_factory=self._github_factory,
            llm_client_factory=self._llm_factory,
            working_tree_factory=self._tree_factory,
            codegen_invoker=self.invoker,
            metrics=self.metrics,
        )

    def _github_factory(self, token, repo):
        self.github_factory_calls.append((token, repo))
        return self.github

    def _llm_factory(self, api_key, model):
        self.llm_factory_calls.append((api_key, model))
        return scripted_llm(*self.replies)

    def _tree_factory(self):
        self.trees_built += 1
        return self.tree

    def run(self, **overrides):
        fields = {
            "prompt": "Add health check endpoint",
            "api_key": ANTHROPIC_KEY,
            "repository_url": REPO_URL,
            "github_token": GITHUB_TOKEN,
        }
        fields.update(overrides)
        return self.orchestrator.execute(WorkflowRequest(**fields))


@pytest.fixture
def harness(tmp_path: Path) -> Harness:
    return Harness(tmp_path)


# =============================================================================
# SUCCESS
# =============================================================================

def test_happy_path_opens_pull_request(harness: Harness) -> None:
    result = harness.run()

    assert result.success is True
    assert result.branch_name == "feat/add-health-check"
    assert result.pull_request_number == 1
    assert result.pull_request_url == "https://github.com/acme/widgets/pull/1"
    assert (result.repository_owner, result.repository_name) == ("acme", "widgets")

    pull = harness.github.pulls[0]
    assert pull["title"] == "AI-Generated Changes: Add health check endpoint"
    assert pull["body"] == "## Summary\nAdds a health check."
    assert pull["head"]["ref"] == "feat/add-health-check"
    assert pull["base"]["ref"] == "main"

    assert harness.github.branches["feat/add-health-check"] == "a" * 40
    assert harness.tree.cloned == (REPO_URL + ".git", "feat/add-health-check", GITHUB_TOKEN)
    assert harness.tree.commits == [
        ("AI Update: Add health check endpoint", "feat/add-health-check")
    ]
    assert harness.github_factory_calls == [(GITHUB_TOKEN, "acme/widgets")]


def test_success_payload_shape(harness: Harness) -> None:
    payload = harness.run().to_dict()
    assert payload["success"] is True
    assert payload["message"] == "Pull request created successfully!"
    assert set(payload["data"]) == {
        "pullRequestUrl",
        "branchName",
        "pullRequestNumber",
        "processedAt",
        "repositoryName",
        "repositoryOwner",
    }


def test_codegen_runs_in_the_working_tree(harness: Harness) -> None:
    harness.run(
        model="claude-opus-4-20250514",
        attached_files=[AttachedFile("contract.txt", b"return 200")],
    )
    call = harness.invoker.calls[0]
    assert call["provider"] is AIProvider.ANTHROPIC
    assert call["api_key"] == ANTHROPIC_KEY
    assert call["cwd"] == harness.tree.path
    assert call["model"] == "claude-opus-4-20250514"
    assert "**File: contract.txt**" in call["prompt"]
    assert call["prompt"].startswith("Add health check endpoint")


def test_openai_key_selects_openai_tool(harness: Harness) -> None:
    harness.run(api_key="sk-proj-abc123")
    assert harness.invoker.calls[0]["provider"] is AIProvider.OPENAI


def test_tree_disposed_and_client_closed(harness: Harness) -> None:
    harness.run()
    assert harness.tree.disposed == 1
    assert harness.github.closed is True


def test_existing_target_branch_is_reused(harness: Harness) -> None:
    harness.github.branches["feat/existing"] = "b" * 40
    result = harness.run(target_branch="feat/existing")

    assert result.success is True
    assert result.branch_name == "feat/existing"
    assert harness.github.count("POST", "/git/refs") == 0
    assert harness.tree.cloned[1] == "feat/existing"
    # branch naming needs no AI call
    assert harness.metrics.value(
        "llm_requests_total", provider="anthropic", purpose="branch_name"
    ) == 0


def test_existing_pull_request_is_returned(harness: Harness) -> None:
    harness.github.branches["feat/existing"] = "b" * 40
    harness.github.pulls.append(make_pull(17, "feat/existing"))

    result = harness.run(target_branch="feat/existing")

    assert result.success is True
    assert result.pull_request_number == 17
    assert harness.github.count("POST", "/pulls") == 0


def test_pull_request_targets_default_branch(tmp_path: Path) -> None:
    github = FakeGitHubClient(default_branch="develop")
    harness = Harness(tmp_path, github=github)
    harness.run()
    assert github.pulls[0]["base"]["ref"] == "develop"
    assert github.branches["feat/add-health-check"] == github.branches["develop"]


def test_branch_name_falls_back_when_ai_fails(tmp_path: Path) -> None:
    harness = Harness(tmp_path, replies=(RuntimeError("overloaded"), "Body"))
    result = harness.run()
    assert result.success is True
    assert result.branch_name == "feat/add-health-check-endpoint"


def test_configured_default_api_key(tmp_path: Path) -> None:
    harness = Harness(tmp_path, config={"llm": {"default_api_key": ANTHROPIC_KEY}})
    result = harness.run(api_key="")
    assert result.success is True
    assert harness.llm_factory_calls[0][0] == ANTHROPIC_KEY


def test_blank_api_key_uses_configured_default(tmp_path: Path) -> None:
    harness = Harness(tmp_path, config={"llm": {"default_api_key": ANTHROPIC_KEY}})
    result = harness.run(api_key="   ")
    assert result.success is True
    assert harness.llm_factory_calls[0][0] == ANTHROPIC_KEY
    assert harness.invoker.calls[0]["api_key"] == ANTHROPIC_KEY


def test_metrics_are_recorded(harness: Harness) -> None:
    harness.run()
    value = harness.metrics.value
    assert value("workflow_runs_total", outcome="success") == 1
    for purpose in ("branch_name", "code_generation", "pr_description"):
        assert value("llm_requests_total", provider="anthropic", purpose=purpose) == 1
    assert value(
        "llm_tokens_total", provider="anthropic", purpose="code_generation", direction="input"
    ) == 100
    assert value("workflow_step_duration_seconds_count", step="cloning") == 1


# =============================================================================
# VALIDATION
# =============================================================================

@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"prompt": "", "api_key": "", "repository_url": "", "github_token": ""},
         MSG_PROMPT_REQUIRED),
        ({"prompt": "   "}, MSG_PROMPT_REQUIRED),
        ({"api_key": "", "repository_url": "", "github_token": ""}, MSG_API_KEY_REQUIRED),
        ({"repository_url": "", "github_token": ""}, MSG_URL_REQUIRED),
        ({"github_token": ""}, MSG_TOKEN_REQUIRED),
        ({"repository_url": "not-a-url", "api_key": "bogus"}, MSG_INVALID_URL),
        ({"api_key": "bogus"}, MSG_INVALID_API_KEY),
    ],
)
def test_validation_messages(harness: Harness, overrides: dict, message: str) -> None:
    result = harness.run(**overrides)

    assert result.success is False
    assert result.message == message
    assert result.state == "validating"
    assert harness.github_factory_calls == []
    assert harness.trees_built == 0
    assert harness.invoker.calls == []


def test_invalid_url_payload(harness: Harness) -> None:
    payload = harness.run(repository_url="not-a-url").to_dict()
    assert payload == {"success": False, "message": MSG_INVALID_URL, "data": {}}


def test_rejected_token(tmp_path: Path) -> None:
    harness = Harness(tmp_path, github=FakeGitHubClient(token_valid=False))
    result = harness.run()

    assert result.success is False
    assert result.message == MSG_INVALID_TOKEN
    assert harness.github.calls == [("GET", "/user")]
    assert harness.github.closed is True
    assert harness.trees_built == 0


# =============================================================================
# FAILURES AFTER VALIDATION
# =============================================================================

def test_branch_creation_failure(harness: Harness) -> None:
    harness.github.fail_create_ref = True
    result = harness.run()

    assert result.success is False
    assert result.state == "branch_resolution"
    assert result.message.startswith("Failed to create branch")
    assert harness.trees_built == 0
    assert harness.github.closed is True


def test_clone_failure_disposes_tree(tmp_path: Path) -> None:
    tree = FakeWorkingTree(tmp_path, clone_error=GitError("git clone failed: not found"))
    harness = Harness(tmp_path, tree=tree)
    result = harness.run()

    assert result.success is False
    assert result.state == "cloning"
    assert result.message.startswith("Failed to clone repository")
    assert tree.disposed == 1
    assert harness.invoker.calls == []
    assert harness.metrics.value(
        "workflow_step_failures_total", step="cloning", error_type="CloneError"
    ) == 1


def test_generation_failure_is_redacted(tmp_path: Path) -> None:
    invoker = FakeInvoker(error=CodeGenerationError(
        f"claude failed with exit code 1: invalid key {ANTHROPIC_KEY}", exit_code=1
    ))
    harness = Harness(tmp_path, invoker=invoker)
    result = harness.run()

    assert result.success is False
    assert result.state == "generating"
    assert ANTHROPIC_KEY not in result.message
    assert harness.tree.commits == []
    assert harness.tree.disposed == 1


def test_push_failure(tmp_path: Path) -> None:
    tree = FakeWorkingTree(tmp_path, push_error=GitError("git push failed: rejected"))
    harness = Harness(tmp_path, tree=tree)
    result = harness.run()

    assert result.success is False
    assert result.state == "committing"
    assert harness.github.pulls == []
    assert tree.disposed == 1


def test_description_failure(tmp_path: Path) -> None:
    harness = Harness(tmp_path, replies=("feat/x", RuntimeError("overloaded")))
    result = harness.run()

    assert result.success is False
    assert result.state == "reconciling_pr"
    assert "pull request description" in result.message
    assert harness.github.pulls == []


def test_unexpected_error_becomes_failure(tmp_path: Path) -> None:
    invoker = FakeInvoker(error=RuntimeError(f"boom {GITHUB_TOKEN}"))
    harness = Harness(tmp_path, invoker=invoker)
    result = harness.run()

    assert result.success is False
    assert result.state == "generating"
    assert GITHUB_TOKEN not in result.message
    assert harness.tree.disposed == 1
    assert harness.metrics.value("workflow_runs_total", outcome="failure") == 1
