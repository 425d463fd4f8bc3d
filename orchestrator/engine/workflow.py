# =============================================================================
# AI PULL REQUEST AGENT - WORKFLOW ORCHESTRATOR
# =============================================================================
"""
Workflow Orchestrator

Runs one change request from prompt to pull request:

    VALIDATING -> BRANCH_RESOLUTION -> CLONING -> GENERATING
        -> COMMITTING -> RECONCILING_PR -> DONE
    (any step) -> FAILED

Guarantees:
    - Validation finishes before any remote call that changes state
    - Each step starts only after the previous one succeeded
    - The working tree is disposed on every exit path
    - execute() never raises; failures become WorkflowFailure
    - Nothing is retried and nothing is rolled back; a caller can retry
      a half-finished run by passing the created branch as target_branch

Every collaborator is built per execution through a factory, so
concurrent executions share no mutable state.

Usage:
    orchestrator = create_workflow_orchestrator(config)
    result = orchestrator.execute(WorkflowRequest(...))
    if result.success:
        print(result.pull_request_url)
"""

import logging
import time
import uuid
from typing import Any, Callable, Dict, Optional

from agents.base.llm_client import (
    AIProvider,
    LLMClient,
    LLMError,
    LLMResponse,
    classify_api_key,
    create_llm_client,
)
from agents.branch_namer import BranchNamer
from agents.codegen.attachments import enhance_prompt
from agents.codegen.invoker import CodeGenerationError, CodeGenerationInvoker
from monitoring.logger import LogContext, redact_secrets
from monitoring.metrics import MetricsCollector
from orchestrator.engine.errors import (
    AICompletionError,
    BranchCreationError,
    CloneError,
    CredentialError,
    GenerationError,
    PullRequestError,
    PushError,
    ValidationError,
    WorkflowError,
    WorkflowState,
)
from orchestrator.engine.models import (
    WorkflowFailure,
    WorkflowRequest,
    WorkflowResult,
    WorkflowSuccess,
)
from orchestrator.git.working_tree import GitError, WorkingTreeManager
from orchestrator.github.client import GitHubAPIError, GitHubClient
from orchestrator.github.pull_requests import (
    PullRequestReconciler,
    build_title,
    generate_description,
)
from orchestrator.github.repository import (
    RepositoryIdentity,
    create_branch,
    is_valid_github_url,
    parse_github_url,
    resolve_default_branch,
    validate_github_token,
)


logger = logging.getLogger(__name__)


COMMIT_MESSAGE_PREFIX = "AI Update: "

MSG_PROMPT_REQUIRED = "Prompt is required"
MSG_API_KEY_REQUIRED = (
    "API key is required. Provide it in the request or set the API_KEY environment variable."
)
MSG_URL_REQUIRED = "GitHub URL is required"
MSG_TOKEN_REQUIRED = "GitHub token is required"
MSG_INVALID_URL = "Invalid GitHub URL format"
MSG_INVALID_API_KEY = "Invalid AI API key format. Use Anthropic (sk-ant-) or OpenAI (sk-) keys."
MSG_INVALID_TOKEN = "Invalid GitHub token"


class _Execution:
    """Values produced by validation and carried through the later steps."""

    def __init__(
        self,
        request: WorkflowRequest,
        api_key: str,
        provider: AIProvider,
        identity: RepositoryIdentity,
        github: GitHubClient,
    ):
        self.request = request
        self.api_key = api_key
        self.provider = provider
        self.identity = identity
        self.github = github
        self.llm: Optional[LLMClient] = None
        self.branch_name: Optional[str] = None
        self.base_branch: Optional[str] = None


# =============================================================================
# ORCHESTRATOR CLASS
# =============================================================================

class WorkflowOrchestrator:
    """
    Sequences a workflow execution.

    Args:
        config: Configuration with ``github``, ``llm``, ``codegen`` and
            ``workspace`` sections
        github_client_factory: ``(token, repo) -> GitHubClient``
        llm_client_factory: ``(api_key, model) -> LLMClient``
        working_tree_factory: ``() -> WorkingTreeManager``
        codegen_invoker: Runs the code generation CLI
        branch_namer: Derives branch names
        metrics: Metrics collector (a private one when None)
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        github_client_factory: Optional[Callable[[str, str], GitHubClient]] = None,
        llm_client_factory: Optional[Callable[[str, Optional[str]], LLMClient]] = None,
        working_tree_factory: Optional[Callable[[], WorkingTreeManager]] = None,
        codegen_invoker: Optional[CodeGenerationInvoker] = None,
        branch_namer: Optional[BranchNamer] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config or {}
        self.github_config = self.config.get("github", {})
        self.llm_config = self.config.get("llm", {})

        self.github_client_factory = github_client_factory or self._default_github_client
        self.llm_client_factory = llm_client_factory or self._default_llm_client
        self.working_tree_factory = working_tree_factory or self._default_working_tree
        self.codegen_invoker = codegen_invoker or CodeGenerationInvoker(
            self.config.get("codegen", {})
        )
        self.branch_namer = branch_namer or BranchNamer(
            {"max_tokens": self.llm_config.get("branch_max_tokens", 50)}
        )
        self.metrics = metrics or MetricsCollector()

    # =========================================================================
    # DEFAULT FACTORIES
    # =========================================================================

    def _default_github_client(self, token: str, repo: str) -> GitHubClient:
        return GitHubClient(
            token=token,
            repo=repo,
            base_url=self.github_config.get("api_url"),
            timeout=self.github_config.get("timeout"),
            retry_count=self.github_config.get("retry_count", 0),
        )

    def _default_llm_client(self, api_key: str, model: Optional[str]) -> LLMClient:
        return create_llm_client(api_key, model=model, config=self.llm_config)

    def _default_working_tree(self) -> WorkingTreeManager:
        return WorkingTreeManager(self.config.get("workspace", {}))

    # =========================================================================
    # EXECUTION
    # =========================================================================

    def execute(self, request: WorkflowRequest) -> WorkflowResult:
        """
        Run the workflow for one request.

        Args:
            request: The change request

        Returns:
            WorkflowSuccess with the pull request, or WorkflowFailure
        """
        workflow_id = uuid.uuid4().hex[:12]
        started = time.monotonic()
        state = WorkflowState.VALIDATING
        execution: Optional[_Execution] = None
        tree: Optional[WorkingTreeManager] = None
        outcome = "failure"

        with LogContext(workflow_id=workflow_id) as context:
            try:
                logger.info("Starting workflow execution")
                with self.metrics.time_step(state.value):
                    execution = self._validate(request)
                context.bind(repository=execution.identity.full_name)

                state = WorkflowState.BRANCH_RESOLUTION
                with self.metrics.time_step(state.value):
                    self._resolve_branch(execution)
                context.bind(branch=execution.branch_name)

                state = WorkflowState.CLONING
                tree = self.working_tree_factory()
                with self.metrics.time_step(state.value):
                    self._clone(execution, tree)

                state = WorkflowState.GENERATING
                with self.metrics.time_step(state.value):
                    self._generate(execution, tree)

                state = WorkflowState.COMMITTING
                with self.metrics.time_step(state.value):
                    self._commit(execution, tree)

                state = WorkflowState.RECONCILING_PR
                with self.metrics.time_step(state.value):
                    result = self._reconcile(execution, tree)

                state = WorkflowState.DONE
                outcome = "success"
                logger.info(f"Workflow completed: {result.pull_request_url}")
                return result

            except WorkflowError as e:
                logger.error(f"Workflow failed during {e.state.value}: {e.message}")
                self.metrics.record_failure(e.state.value, type(e).__name__)
                return WorkflowFailure(message=e.message, state=e.state.value)

            except Exception as e:
                message = redact_secrets(str(e), extra=self._secrets(request))
                logger.error(
                    f"Unexpected error during {state.value}: {message}", exc_info=True
                )
                self.metrics.record_failure(state.value, type(e).__name__)
                return WorkflowFailure(message=message or "Internal error", state=state.value)

            finally:
                if tree is not None:
                    tree.dispose()
                if execution is not None:
                    execution.github.close()
                self.metrics.record_workflow(outcome, time.monotonic() - started)

    # =========================================================================
    # STEPS
    # =========================================================================

    def _validate(self, request: WorkflowRequest) -> _Execution:
        """Check the request; only the final token check touches the network."""
        if not (request.prompt or "").strip():
            raise ValidationError(MSG_PROMPT_REQUIRED)

        api_key = (request.api_key or "").strip() or (
            self.llm_config.get("default_api_key") or ""
        ).strip()
        if not api_key:
            raise ValidationError(MSG_API_KEY_REQUIRED)

        repository_url = (request.repository_url or "").strip()
        if not repository_url:
            raise ValidationError(MSG_URL_REQUIRED)

        github_token = (request.github_token or "").strip()
        if not github_token:
            raise ValidationError(MSG_TOKEN_REQUIRED)

        if not is_valid_github_url(repository_url):
            raise ValidationError(MSG_INVALID_URL)

        provider = classify_api_key(api_key)
        if provider is AIProvider.UNKNOWN:
            raise CredentialError(MSG_INVALID_API_KEY)

        identity = parse_github_url(repository_url)
        if identity is None:
            raise ValidationError(MSG_INVALID_URL)

        github = self.github_client_factory(github_token, identity.full_name)
        if not validate_github_token(github):
            github.close()
            raise CredentialError(MSG_INVALID_TOKEN)

        logger.info(f"Request validated for {identity.full_name} ({provider.value})")
        return _Execution(request, api_key, provider, identity, github)

    def _resolve_branch(self, execution: _Execution) -> None:
        request = execution.request
        execution.base_branch = resolve_default_branch(
            execution.github,
            fallback=self.github_config.get("default_base_branch", "main"),
        )

        if request.target_branch and request.target_branch.strip():
            execution.branch_name = request.target_branch.strip()
            logger.info(f"Using existing branch: {execution.branch_name}")
            return

        suggestion = self.branch_namer.derive(request.prompt, self._llm(execution))
        execution.branch_name = suggestion.name
        self._record_usage(execution, "branch_name", suggestion.response)

        try:
            create_branch(execution.github, execution.branch_name, execution.base_branch)
        except GitHubAPIError as e:
            raise BranchCreationError(f"Failed to create branch: {e}")

    def _clone(self, execution: _Execution, tree: WorkingTreeManager) -> None:
        try:
            tree.clone(
                execution.identity.clone_url,
                execution.branch_name,
                execution.request.github_token.strip(),
            )
        except GitError as e:
            raise CloneError(f"Failed to clone repository: {e}")

    def _generate(self, execution: _Execution, tree: WorkingTreeManager) -> None:
        request = execution.request
        prompt = enhance_prompt(request.prompt, request.attached_files)
        try:
            response = self.codegen_invoker.invoke(
                execution.provider,
                execution.api_key,
                prompt,
                tree.path,
                model=request.model,
            )
        except CodeGenerationError as e:
            raise GenerationError(
                f"Code generation failed: {redact_secrets(str(e), extra=[execution.api_key])}"
            )
        self._record_usage(execution, "code_generation", response)

    def _commit(self, execution: _Execution, tree: WorkingTreeManager) -> None:
        message = f"{COMMIT_MESSAGE_PREFIX}{execution.request.prompt}"
        try:
            pushed = tree.commit_and_push(message, execution.branch_name)
        except GitError as e:
            raise PushError(f"Failed to commit and push: {e}")
        if not pushed:
            logger.info("Code generation produced no changes; nothing was pushed")

    def _reconcile(self, execution: _Execution, tree: WorkingTreeManager) -> WorkflowSuccess:
        request = execution.request
        try:
            summary = tree.get_change_summary()
        except GitError as e:
            raise PushError(f"Failed to read change summary: {e}")

        try:
            description = generate_description(
                self._llm(execution),
                request.prompt,
                summary,
                max_tokens=self.llm_config.get("description_max_tokens", 1024),
            )
        except LLMError as e:
            raise AICompletionError(
                f"Failed to generate pull request description: {e}",
                state=WorkflowState.RECONCILING_PR,
            )
        self._record_usage(execution, "pr_description", description)

        reconciler = PullRequestReconciler(execution.github, execution.identity.owner)
        try:
            pull_request = reconciler.reconcile(
                title=build_title(request.prompt),
                body=description.content,
                head=execution.branch_name,
                base=execution.base_branch,
            )
        except GitHubAPIError as e:
            raise PullRequestError(f"Failed to create pull request: {e}")

        return WorkflowSuccess(
            pull_request_url=pull_request.url,
            branch_name=execution.branch_name,
            pull_request_number=pull_request.number,
            repository_name=execution.identity.name,
            repository_owner=execution.identity.owner,
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _llm(self, execution: _Execution) -> LLMClient:
        if execution.llm is None:
            execution.llm = self.llm_client_factory(execution.api_key, execution.request.model)
        return execution.llm

    def _record_usage(
        self, execution: _Execution, purpose: str, response: Optional[LLMResponse]
    ) -> None:
        if response is None:
            return
        self.metrics.record_llm_call(
            execution.provider.value,
            purpose,
            response.tokens_input,
            response.tokens_output,
        )

    @staticmethod
    def _secrets(request: WorkflowRequest) -> list:
        return [s for s in (request.api_key, request.github_token) if s]


def create_workflow_orchestrator(
    config: Optional[Dict[str, Any]] = None,
    metrics: Optional[MetricsCollector] = None,
) -> WorkflowOrchestrator:
    """Factory function to create a workflow orchestrator from configuration."""
    return WorkflowOrchestrator(config=config, metrics=metrics)
