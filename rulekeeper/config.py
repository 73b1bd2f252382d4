#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

from __future__ import annotations

import dataclasses
import json
import os
from typing import TYPE_CHECKING, Any

from dotenv import find_dotenv, load_dotenv

from .logging import get_logger
from .models.ruleset import BypassActor
from .noise import DEFAULT_DENYLIST, denylist_for_variant
from .translate import DEFAULT_BRANCH_SPECS, BranchSpec
from .utils import query_json

if TYPE_CHECKING:
    from collections.abc import Mapping

_logger = get_logger(__name__)

DEFAULT_CONFIG_FILE = "rulekeeper.json"
DEFAULT_REPOS_DIR = os.path.join(".github", "repos")
DEFAULT_EXCLUDED_REPOSITORIES = (".github",)

BRANCH_SOURCES = ("rest", "graphql")

# the GitHub Actions app is used as the default integration allowed to bypass rulesets
_GITHUB_ACTIONS_APP_ID = 15368

DEFAULT_BYPASS_ACTORS: tuple[Mapping[str, Any], ...] = (
    {"actor_id": 1, "actor_type": "OrganizationAdmin", "bypass_mode": "always"},
    {"actor_id": 5, "actor_type": "RepositoryRole", "bypass_mode": "always"},
    {"actor_id": _GITHUB_ACTIONS_APP_ID, "actor_type": "Integration", "bypass_mode": "always"},
)

_ACTOR_TYPES = {"OrganizationAdmin", "RepositoryRole", "Integration"}
_BYPASS_MODES = {"always", "pull_request"}

ACCESS_TOKEN_ENV = "ACCESS_TOKEN"
ORGANIZATION_ENV = "ORGANIZATION"
SINGLE_REPOSITORY_ENV = "SINGLE_REPOSITORY"


@dataclasses.dataclass(frozen=True)
class Environment:
    """
    The settings taken from the process environment, a .env file is loaded if present.
    """

    access_token: str | None
    organization: str | None
    single_repository: str | None

    @classmethod
    def load(cls, dotenv_path: str | None = None) -> Environment:
        # the .env file is looked up starting from the working directory
        load_dotenv(dotenv_path if dotenv_path is not None else find_dotenv(usecwd=True))

        return cls(
            access_token=os.getenv(ACCESS_TOKEN_ENV) or None,
            organization=os.getenv(ORGANIZATION_ENV) or None,
            single_repository=os.getenv(SINGLE_REPOSITORY_ENV) or None,
        )

    def require_access_token(self) -> str:
        if self.access_token is None:
            raise RuntimeError(f"missing required environment variable '{ACCESS_TOKEN_ENV}'")
        return self.access_token

    def require_organization(self) -> str:
        if self.organization is None:
            raise RuntimeError(f"missing required environment variable '{ORGANIZATION_ENV}'")
        return self.organization

    def __repr__(self) -> str:
        token = "<redacted>" if self.access_token is not None else None
        return (
            f"Environment(access_token={token}, organization={self.organization!r}, "
            f"single_repository={self.single_repository!r})"
        )


@dataclasses.dataclass(frozen=True)
class RuleKeeperConfig:
    """
    The policy controlling how repositories are reconciled, read from an optional json file.
    """

    configuration: Mapping[str, Any]
    working_dir: str

    _branch_specs: tuple[BranchSpec, ...] = dataclasses.field(init=False)
    _bypass_actors: tuple[BypassActor, ...] = dataclasses.field(init=False)
    _denylist: frozenset[str] = dataclasses.field(init=False)

    def __post_init__(self):
        if self.branch_source not in BRANCH_SOURCES:
            raise RuntimeError(
                f"invalid 'branch_source' value '{self.branch_source}', expected one of {BRANCH_SOURCES}"
            )

        raw_specs = self.configuration.get("branch_specs")
        branch_specs = (
            tuple(BranchSpec.from_config(x) for x in raw_specs) if raw_specs is not None else DEFAULT_BRANCH_SPECS
        )
        names = [spec.name for spec in branch_specs]
        if len(names) != len(set(names)):
            raise RuntimeError(f"duplicate names in 'branch_specs': {names}")
        object.__setattr__(self, "_branch_specs", branch_specs)

        raw_actors = self.configuration.get("bypass_actors")
        if raw_actors is None:
            raw_actors = DEFAULT_BYPASS_ACTORS
        actors = tuple(_parse_bypass_actor(x) for x in raw_actors)
        object.__setattr__(self, "_bypass_actors", actors)

        base_denylist = self.configuration.get("denylist")
        object.__setattr__(
            self,
            "_denylist",
            denylist_for_variant(self.variant, base_denylist if base_denylist is not None else DEFAULT_DENYLIST),
        )

    @property
    def repos_dir(self) -> str:
        repos_dir = self.configuration.get("repos_dir") or DEFAULT_REPOS_DIR
        return repos_dir if os.path.isabs(repos_dir) else os.path.join(self.working_dir, repos_dir)

    @property
    def excluded_repositories(self) -> frozenset[str]:
        excluded = self.configuration.get("excluded_repositories")
        return frozenset(excluded if excluded is not None else DEFAULT_EXCLUDED_REPOSITORIES)

    @property
    def variant(self) -> str:
        return self.configuration.get("variant") or "default"

    @property
    def denylist(self) -> frozenset[str]:
        return self._denylist

    @property
    def branch_source(self) -> str:
        return self.configuration.get("branch_source") or "rest"

    @property
    def branch_specs(self) -> tuple[BranchSpec, ...]:
        return self._branch_specs

    @property
    def bypass_actors(self) -> tuple[BypassActor, ...]:
        return self._bypass_actors

    @property
    def emit_pull_request_rule(self) -> bool:
        return bool(self.configuration.get("emit_pull_request_rule", False))

    @property
    def max_rate_limit_wait(self) -> float | None:
        value = query_json("github.max_rate_limit_wait", self.configuration)
        return float(value) if value is not None else None

    @property
    def use_cache(self) -> bool:
        value = query_json("github.cache", self.configuration)
        return bool(value) if value is not None else True

    def with_overrides(self, **overrides: Any) -> RuleKeeperConfig:
        """
        Returns a new config in which every override that is not None replaces the configured value.
        """
        configuration = dict(self.configuration)
        configuration.update({k: v for k, v in overrides.items() if v is not None})
        return RuleKeeperConfig(configuration, self.working_dir)

    @classmethod
    def from_file(cls, config_file: str | None, working_dir: str | None = None) -> RuleKeeperConfig:
        """
        Loads the config from a json file. Without an explicit config file, the default
        file is used if it exists, otherwise all settings take their default values.
        """
        if working_dir is None:
            working_dir = os.getcwd()

        if config_file is None:
            default_file = os.path.join(working_dir, DEFAULT_CONFIG_FILE)
            if not os.path.exists(default_file):
                _logger.debug("no config file found at '%s', using defaults", default_file)
                return cls({}, working_dir)
            config_file = default_file

        if not os.path.exists(config_file):
            raise RuntimeError(f"configuration file '{config_file}' not found")

        _logger.debug("loading config from '%s'", config_file)

        try:
            with open(config_file) as f:
                configuration = json.load(f)
        except (OSError, json.JSONDecodeError) as ex:
            raise RuntimeError(f"failed to read configuration file '{config_file}': {ex}") from ex

        if not isinstance(configuration, dict):
            raise RuntimeError(f"configuration file '{config_file}' must contain a json object")

        return cls(configuration, working_dir)

    @classmethod
    def from_dict(cls, configuration: Mapping[str, Any], working_dir: str = ".") -> RuleKeeperConfig:
        return cls(configuration, working_dir)


def _parse_bypass_actor(data: Mapping[str, Any]) -> BypassActor:
    actor = BypassActor.from_model_data(data)

    if actor.actor_type not in _ACTOR_TYPES:
        raise RuntimeError(f"invalid bypass actor type '{actor.actor_type}', expected one of {sorted(_ACTOR_TYPES)}")

    if actor.bypass_mode not in _BYPASS_MODES:
        raise RuntimeError(f"invalid bypass mode '{actor.bypass_mode}', expected one of {sorted(_BYPASS_MODES)}")

    return actor
