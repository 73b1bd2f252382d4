#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

from __future__ import annotations

import asyncio
import dataclasses
import os
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import aiofiles
import yaml
from aiofiles import os as aios
from aiofiles import ospath
from aiohttp import ClientError

from rulekeeper.document import merge_into
from rulekeeper.logging import get_logger
from rulekeeper.models.document import RepoDocument
from rulekeeper.noise import NoiseFilter
from rulekeeper.providers.github.exception import GitHubException
from rulekeeper.sanitize import RulesetSanitizer
from rulekeeper.translate import LegacyTranslator, branch_declaration_from_rule

if TYPE_CHECKING:
    from collections.abc import Awaitable, Sequence

    from rulekeeper.config import RuleKeeperConfig
    from rulekeeper.models.branch import BranchDeclaration
    from rulekeeper.models.ruleset import Ruleset
    from rulekeeper.providers.github import GitHubProvider
    from rulekeeper.translate import BranchSpec

T = TypeVar("T")

_logger = get_logger(__name__)

# failures of a single fetch that do not abort processing of a repository
_TRANSIENT_ERRORS = (RuntimeError, GitHubException, ClientError, asyncio.TimeoutError)


class FetchStatus(Enum):
    ABSENT = 1
    TRANSIENT_ERROR = 2
    DATA = 3


@dataclasses.dataclass(frozen=True)
class FetchResult(Generic[T]):
    """
    The result of fetching a single branch protection or ruleset, telling an expected
    absence apart from a failed request.
    """

    status: FetchStatus
    data: T | None = None
    error: Exception | None = None

    @classmethod
    def of(cls, data: T | None) -> FetchResult[T]:
        if data is None:
            return cls(FetchStatus.ABSENT)
        return cls(FetchStatus.DATA, data)

    @classmethod
    def transient_error(cls, error: Exception) -> FetchResult[T]:
        return cls(FetchStatus.TRANSIENT_ERROR, error=error)

    @property
    def has_data(self) -> bool:
        return self.status == FetchStatus.DATA


class RepositoryOutcome(Enum):
    WRITTEN = "written"
    UNCHANGED = "unchanged"
    NO_WRITE_NEEDED = "no write needed"
    SKIPPED_ARCHIVED = "skipped (archived)"
    SKIPPED_EXCLUDED = "skipped (excluded)"

    @property
    def is_skipped(self) -> bool:
        return self in (RepositoryOutcome.SKIPPED_ARCHIVED, RepositoryOutcome.SKIPPED_EXCLUDED)


class DocumentError(Exception):
    """
    Raised when a declarative document can not be read, parsed or written.
    """

    def __init__(self, path: str, reason: str):
        super().__init__(path, reason)
        self.path = path
        self.reason = reason

    def __str__(self):
        return f"invalid document '{self.path}': {self.reason}"


async def load_document(path: str) -> dict[str, Any] | None:
    """
    Loads an existing declarative document, returns None if there is none.
    An empty file is treated as an empty document.
    """
    if not await ospath.exists(path):
        return None

    try:
        async with aiofiles.open(path) as file:
            content = await file.read()
        data = yaml.safe_load(content)
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as ex:
        raise DocumentError(path, str(ex)) from ex

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise DocumentError(path, f"expected a mapping at the top level, found '{type(data).__name__}'")

    return data


async def write_document(path: str, document: dict[str, Any]) -> None:
    directory = os.path.dirname(path)
    if directory and not await ospath.exists(directory):
        await aios.makedirs(directory, exist_ok=True)

    try:
        content = yaml.safe_dump(document, sort_keys=False, default_flow_style=False, allow_unicode=True)
    except yaml.YAMLError as ex:
        raise DocumentError(path, f"unable to serialize document: {ex}") from ex

    async with aiofiles.open(path, "w") as file:
        await file.write(content)


class RepositoryOrchestrator:
    """
    Reconciles the declarative document of a single repository with its live settings.
    """

    def __init__(self, provider: GitHubProvider, org_id: str, config: RuleKeeperConfig):
        self._provider = provider
        self._org_id = org_id
        self._repos_dir = config.repos_dir
        self._excluded_repositories = config.excluded_repositories
        self._branch_source = config.branch_source
        self._branch_specs: Sequence[BranchSpec] = config.branch_specs
        self._noise_filter = NoiseFilter(config.denylist)
        self._translator = LegacyTranslator(config.bypass_actors, config.emit_pull_request_rule)

    def document_path(self, repo_name: str) -> str:
        return os.path.join(self._repos_dir, f"{repo_name}.yml")

    async def process(self, repo_name: str) -> RepositoryOutcome:
        repo_data = await self._provider.get_repository(self._org_id, repo_name)

        if repo_data.get("archived", False) is True:
            _logger.info("skipping archived repo '%s'", repo_name)
            return RepositoryOutcome.SKIPPED_ARCHIVED

        name = repo_data.get("name", repo_name)
        if name in self._excluded_repositories:
            _logger.info("skipping excluded repo '%s'", name)
            return RepositoryOutcome.SKIPPED_EXCLUDED

        path = self.document_path(name)
        existing = await load_document(path)

        computed = await self.compute_document(name, repo_data.get("default_branch") or "main")
        outcome = await self._persist(path, existing, computed)

        _logger.info("processed repo '%s': %s", name, outcome.value)
        return outcome

    async def compute_document(self, repo_name: str, default_branch: str) -> RepoDocument:
        branches: list[BranchDeclaration] = []
        translated: list[Ruleset] = []

        if self._branch_source == "graphql":
            result = await self._fetch(
                f"branch protection rules of '{repo_name}'",
                self._provider.get_branch_protection_rules(self._org_id, repo_name),
            )
            branches = [branch_declaration_from_rule(rule, default_branch) for rule in result.data or []]
        else:
            for branch_spec in self._branch_specs:
                protection = await self._fetch_protection(repo_name, branch_spec, default_branch)
                translated.append(self._translator.translate(protection, branch_spec, default_branch))

            translated = self._noise_filter.filter_rulesets(translated)

        sanitizer = RulesetSanitizer(
            {spec.name: spec.declaration_name(default_branch) for spec in self._branch_specs},
        )

        fetched = sanitizer.sanitize_all(await self._fetch_rulesets(repo_name), [x.name for x in translated])
        rulesets = translated + self._noise_filter.filter_rulesets(fetched)

        superseded = {x.name: x for x in sanitizer.superseded_branches(rulesets)}
        branches = [superseded.pop(x.name, x) for x in branches] + list(superseded.values())

        return RepoDocument(rulesets=rulesets, branches=branches)

    async def _persist(
        self,
        path: str,
        existing: dict[str, Any] | None,
        computed: RepoDocument,
    ) -> RepositoryOutcome:
        computed_data = computed.to_model_dict()

        if existing is None and len(computed_data) == 0:
            return RepositoryOutcome.NO_WRITE_NEEDED

        merged = merge_into(existing, computed_data)
        if len(merged) == 0:
            return RepositoryOutcome.NO_WRITE_NEEDED

        if merged == existing:
            return RepositoryOutcome.UNCHANGED

        _logger.debug("writing document '%s'", path)
        await write_document(path, merged)
        return RepositoryOutcome.WRITTEN

    async def _fetch_protection(
        self,
        repo_name: str,
        branch_spec: BranchSpec,
        default_branch: str,
    ) -> dict[str, Any] | None:
        source_branch = branch_spec.source_branch(default_branch)

        result = await self._fetch(
            f"protection of branch '{source_branch}' in '{repo_name}'",
            self._provider.get_branch_protection(self._org_id, repo_name, source_branch),
        )

        if not result.has_data and source_branch != default_branch:
            _logger.debug(
                "falling back to protection of default branch '%s' for '%s'", default_branch, branch_spec.name
            )
            result = await self._fetch(
                f"protection of branch '{default_branch}' in '{repo_name}'",
                self._provider.get_branch_protection(self._org_id, repo_name, default_branch),
            )

        return result.data

    async def _fetch_rulesets(self, repo_name: str) -> list[dict[str, Any]]:
        listing = await self._fetch(
            f"rulesets of '{repo_name}'",
            self._provider.list_rulesets(self._org_id, repo_name, includes_parents=False),
        )

        result = []
        for summary in listing.data or []:
            detail = await self._fetch(
                f"ruleset '{summary.get('name', summary['id'])}' of '{repo_name}'",
                self._provider.get_ruleset(self._org_id, repo_name, str(summary["id"])),
            )

            if detail.has_data:
                result.append(detail.data)

        return result

    @staticmethod
    async def _fetch(description: str, awaitable: Awaitable[T | None]) -> FetchResult[T]:
        try:
            data = await awaitable
        except _TRANSIENT_ERRORS as ex:
            _logger.warning("failed to retrieve %s: %s", description, ex)
            return FetchResult.transient_error(ex)

        result: FetchResult[T] = FetchResult.of(data)
        if result.status == FetchStatus.ABSENT:
            _logger.debug("no %s present", description)
        return result
