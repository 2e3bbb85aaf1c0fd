"""Shared GitHub Actions authoring conventions.

These constants encode the conventions the lint rules check and the built-in
patterns follow, so both sides agree on what "pinned", "untrusted" and
"lockfile" mean.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

FULL_SHA_RE = re.compile(r"^[0-9a-f]{40}$", re.IGNORECASE)
ABBREVIATED_SHA_RE = re.compile(r"^[0-9a-f]{7,39}$", re.IGNORECASE)
MAJOR_TAG_RE = re.compile(r"^v?\d+$")
MINOR_TAG_RE = re.compile(r"^v?\d+\.\d+$")
SEMVER_TAG_RE = re.compile(r"^v?\d+\.\d+\.\d+(?:[-+][0-9A-Za-z.-]+)?$")
DOCKER_DIGEST_RE = re.compile(r"^sha256:[0-9a-f]{64}$")

MUTABLE_REFS: frozenset[str] = frozenset({"main", "master", "latest", "head", "develop", "dev", "trunk"})

EXPRESSION_RE = re.compile(r"\$\{\{\s*(.*?)\s*\}\}", re.DOTALL)

# Event fields an outside contributor can set. Interpolating them straight into a
# shell script allows command injection.
UNTRUSTED_CONTEXT_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern)
    for pattern in (
        r"\bgithub\.head_ref\b",
        r"\bgithub\.event\.(?:pull_request|issue|discussion)\.title\b",
        r"\bgithub\.event\.(?:pull_request|issue|discussion)\.body\b",
        r"\bgithub\.event\.(?:comment|review|review_comment)\.body\b",
        r"\bgithub\.event\.pull_request\.head\.(?:ref|label)\b",
        r"\bgithub\.event\.pull_request\.head\.repo\.default_branch\b",
        r"\bgithub\.event\.workflow_run\.head_branch\b",
        r"\bgithub\.event\.workflow_run\.head_commit\.(?:message|author\.(?:email|name))\b",
        r"\bgithub\.event\.head_commit\.(?:message|author\.(?:email|name))\b",
        r"\bgithub\.event\.commits(?:\[[^\]]*\]|\.\*)?\.(?:message|author\.(?:email|name))\b",
        r"\bgithub\.event\.pages(?:\[[^\]]*\]|\.\*)?\.page_name\b",
    )
)
SECRET_CONTEXT_RE = re.compile(r"\bsecrets\.[A-Za-z_][A-Za-z0-9_]*|\bsecrets\[")

# actions/cache/save is excluded: its key normally comes from the matching restore step.
CACHE_ACTIONS: frozenset[str] = frozenset({"actions/cache", "actions/cache/restore"})

LOCKFILE_PATTERNS: tuple[str, ...] = (
    "package-lock.json",
    "npm-shrinkwrap.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "bun.lockb",
    "poetry.lock",
    "Pipfile.lock",
    "uv.lock",
    "pdm.lock",
    "requirements",
    "Gemfile.lock",
    "go.sum",
    "Cargo.lock",
    "composer.lock",
    "gradle",
    "pom.xml",
    "packages.lock.json",
    "mix.lock",
    "pubspec.lock",
    "Podfile.lock",
    "flake.lock",
)
HASH_FILES_RE = re.compile(r"hashFiles\(([^)]*)\)")


@dataclass(frozen=True, slots=True)
class PinnedAction:
    """An action pinned to a full commit SHA, with the release it corresponds to."""

    slug: str
    sha: str
    version: str

    @property
    def uses(self) -> str:
        return f"{self.slug}@{self.sha}"


CHECKOUT = PinnedAction("actions/checkout", "b4ffde65f46336ab88eb53be808477a3936bae11", "v4.1.1")
SETUP_NODE = PinnedAction("actions/setup-node", "60edb5dd545a775178f52524783378180af0d1f8", "v4.0.2")
CACHE = PinnedAction("actions/cache", "0c45773b623bea8c8e75f6c82b208c3cf94ea4f9", "v4.0.2")
CONFIGURE_AWS_CREDENTIALS = PinnedAction(
    "aws-actions/configure-aws-credentials", "e3dd6a429d7300a6a4c196c26e071d42e0343502", "v4.0.2"
)

PINNED_ACTIONS: tuple[PinnedAction, ...] = (CHECKOUT, SETUP_NODE, CACHE, CONFIGURE_AWS_CREDENTIALS)


def pinned_action_by_slug(slug: str) -> PinnedAction | None:
    normalized = slug.strip().lower()
    for action in PINNED_ACTIONS:
        if action.slug == normalized:
            return action
    return None
