"""Built-in patterns.

Every built-in job declares its own permissions and timeout, and every action
it uses is pinned to a full commit SHA, so applying a built-in pattern never
adds lint findings of its own.
"""

from __future__ import annotations

from collections.abc import Sequence

from github_workflow_toolkit.conventions import (
    CACHE,
    CHECKOUT,
    CONFIGURE_AWS_CREDENTIALS,
    SETUP_NODE,
    PinnedAction,
)
from github_workflow_toolkit.document.model import (
    AccessLevel,
    ActionRef,
    ActionStep,
    Concurrency,
    Environment,
    Job,
    PermissionScope,
    Permissions,
    RunStep,
)

from .patterns import ALL_JOBS, Pattern, StepContribution

DEFAULT_RUNNER = ("ubuntu-latest",)
DEFAULT_NODE_VERSIONS = ("18", "22")

READ_CONTENTS = Permissions({PermissionScope.CONTENTS: AccessLevel.READ})


def _action(action: PinnedAction, name: str, **inputs: object) -> ActionStep:
    return ActionStep(name=name, uses=ActionRef.parse(action.uses), inputs=dict(inputs))


def _checkout() -> ActionStep:
    return _action(CHECKOUT, "Check out repository")


def matrix_test(versions: Sequence[str] = DEFAULT_NODE_VERSIONS) -> Pattern:
    """One independent `test-<version>` job per Node.js version."""

    jobs = tuple(
        Job(
            id=f"test-{version}",
            name=f"Test (Node.js {version})",
            runs_on=DEFAULT_RUNNER,
            permissions=READ_CONTENTS,
            timeout_minutes=15,
            steps=(
                _checkout(),
                _action(SETUP_NODE, "Set up Node.js", **{"node-version": version, "cache": "npm"}),
                RunStep(name="Install dependencies", run="npm ci"),
                RunStep(name="Run tests", run="npm test"),
            ),
        )
        for version in versions
    )
    return Pattern(
        name="matrix-test",
        description="Test jobs for Node.js " + ", ".join(versions),
        jobs=jobs,
    )


def staged_rollout(after: str = "build") -> Pattern:
    """Deploy to staging, then to production behind a protected environment."""

    permissions = Permissions(
        {PermissionScope.CONTENTS: AccessLevel.READ, PermissionScope.DEPLOYMENTS: AccessLevel.WRITE}
    )

    def deploy_job(job_id: str, environment: Environment, needs: tuple[str, ...]) -> Job:
        return Job(
            id=job_id,
            name=f"Deploy to {environment.name}",
            runs_on=DEFAULT_RUNNER,
            needs=needs,
            environment=environment,
            permissions=permissions,
            concurrency=Concurrency(group=f"deploy-{environment.name}", cancel_in_progress=False),
            timeout_minutes=30,
            steps=(
                _checkout(),
                RunStep(name="Deploy", run=f"./scripts/deploy.sh {environment.name}"),
            ),
        )

    staging = Environment(name="staging")
    production = Environment(
        name="production", protection_rules=("required-reviewers", "wait-timer")
    )
    return Pattern(
        name="staged-rollout",
        description=f"Deploy to staging after {after}, then to a protected production environment",
        jobs=(
            deploy_job("deploy-staging", staging, (after,)),
            deploy_job("deploy-production", production, ("deploy-staging",)),
        ),
    )


def oidc_deploy(after: str = "build") -> Pattern:
    """Replace `deploy` with a job that assumes a cloud role through OIDC."""

    job = Job(
        id="deploy",
        name="Deploy (OIDC)",
        runs_on=DEFAULT_RUNNER,
        needs=(after,),
        environment=Environment(name="production"),
        permissions=Permissions(
            {PermissionScope.ID_TOKEN: AccessLevel.WRITE, PermissionScope.CONTENTS: AccessLevel.READ}
        ),
        concurrency=Concurrency(group="deploy-production", cancel_in_progress=False),
        timeout_minutes=30,
        steps=(
            _checkout(),
            _action(
                CONFIGURE_AWS_CREDENTIALS,
                "Configure cloud credentials",
                **{"role-to-assume": "${{ vars.AWS_DEPLOY_ROLE_ARN }}", "aws-region": "us-east-1"},
            ),
            RunStep(name="Deploy", run="./scripts/deploy.sh production"),
        ),
    )
    return Pattern(
        name="oidc-deploy",
        description="Deploy with short-lived OIDC credentials instead of stored cloud keys",
        jobs=(job,),
        overrides=frozenset({"deploy"}),
    )


def dependency_cache() -> Pattern:
    """Restore the npm cache, keyed on the lockfile, in every steps-job."""

    step = _action(
        CACHE,
        "Cache dependencies",
        path="~/.npm",
        key="${{ runner.os }}-npm-${{ hashFiles('**/package-lock.json') }}",
        **{"restore-keys": "${{ runner.os }}-npm-"},
    )
    return Pattern(
        name="dependency-cache",
        description="Lockfile-keyed dependency cache after checkout in every job",
        steps=(StepContribution(job=ALL_JOBS, steps=(step,), position="after-checkout"),),
    )


def builtin_patterns() -> tuple[Pattern, ...]:
    return (matrix_test(), staged_rollout(), oidc_deploy(), dependency_cache())
