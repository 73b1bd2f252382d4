#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

import asyncio
import sys
from typing import Any

import click

from rulekeeper.logging import CONSOLE_STDOUT, init_logging, print_exception

from . import __version__
from .config import BRANCH_SOURCES, Environment, RuleKeeperConfig
from .operations import Operation
from .utils import IndentingPrinter, unwrap

_CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"], "max_content_width": 120}

_CONFIG: RuleKeeperConfig | None = None
_ENVIRONMENT: Environment | None = None


class StdCommand(click.Command):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.context_settings = _CONTEXT_SETTINGS
        self.params.insert(
            0,
            click.Option(
                ["-v", "--verbose"],
                count=True,
                help="enable verbose output (-vvv for more verbose output)",
            ),
        )

        self.params.insert(
            0,
            click.Option(
                ["-c", "--config"],
                default=None,
                type=click.Path(False, True, False),
                help="configuration file to use, defaults to 'rulekeeper.json' if present",
            ),
        )

    def invoke(self, ctx: click.Context) -> Any:
        global _CONFIG, _ENVIRONMENT

        verbose = ctx.params.pop("verbose")
        init_logging(verbose)

        config_file = ctx.params.pop("config")

        try:
            _ENVIRONMENT = Environment.load()
            _CONFIG = RuleKeeperConfig.from_file(config_file)
        except Exception as exc:
            print_exception(exc)
            sys.exit(2)

        return super().invoke(ctx)


@click.group(context_settings=_CONTEXT_SETTINGS)
@click.version_option(version=__version__, prog_name="rulekeeper")
def cli():
    """
    Keeping declarative repository settings in line with GitHub branch protection rules and rulesets.
    """


@cli.command(cls=StdCommand)
@click.argument("repositories", nargs=-1)
@click.option(
    "--repos-dir",
    type=click.Path(False, False, True),
    help="directory containing the repository documents",
)
@click.option(
    "--variant",
    type=click.Choice(["default", "flowzone"]),
    help="the denylist variant to apply",
)
@click.option(
    "--branch-source",
    type=click.Choice(BRANCH_SOURCES),
    help="where to read branch protection from",
)
@click.option(
    "--emit-pull-request-rule",
    is_flag=True,
    default=False,
    help="emit a pull request rule for protections requiring reviews",
)
@click.option(
    "--no-cache",
    is_flag=True,
    default=False,
    help="do not cache responses of the GitHub API",
)
def sync(repositories: list[str], repos_dir, variant, branch_source, emit_pull_request_rule, no_cache):
    """
    Reconciles the documents of repositories with their live branch protection and rulesets.
    """
    from rulekeeper.operations.sync import SyncOperation

    _execute_organization_operation(
        repositories,
        SyncOperation,
        repos_dir=repos_dir,
        variant=variant,
        branch_source=branch_source,
        emit_pull_request_rule=emit_pull_request_rule or None,
        github={"cache": False} if no_cache else None,
    )


@cli.command(cls=StdCommand)
@click.option(
    "--repos-dir",
    type=click.Path(False, False, True),
    help="directory containing the repository documents",
)
def upgrade(repos_dir):
    """
    Upgrades the rulesets of existing repository documents in place.
    """
    from rulekeeper.operations.upgrade import UpgradeOperation

    _execute_operation(UpgradeOperation(repos_dir))


@cli.command(cls=StdCommand)
@click.argument("template", type=click.Path(True, True, False))
@click.argument("repositories", nargs=-1)
@click.option(
    "--no-cache",
    is_flag=True,
    default=False,
    help="do not cache responses of the GitHub API",
)
def drift(template: str, repositories: list[str], no_cache):
    """
    Reports repositories whose settings deviate from a template.
    """
    from rulekeeper.operations.drift import DriftOperation

    _execute_organization_operation(
        repositories,
        lambda org_id, token, repo_names: DriftOperation(org_id, token, template, repo_names),
        github={"cache": False} if no_cache else None,
    )


def _execute_organization_operation(repositories: list[str], factory, **overrides: Any):
    global _CONFIG

    try:
        environment = unwrap(_ENVIRONMENT)
        access_token = environment.require_access_token()
        org_id = environment.require_organization()

        # explicit repositories take precedence over a repository set in the environment
        repo_names = list(repositories)
        if len(repo_names) == 0 and environment.single_repository is not None:
            repo_names = [environment.single_repository]

        github_override = overrides.pop("github", None)
        if github_override is not None:
            overrides["github"] = {**unwrap(_CONFIG).configuration.get("github", {}), **github_override}

        _CONFIG = unwrap(_CONFIG).with_overrides(**overrides)
        operation = factory(org_id, access_token, repo_names)
    except Exception as exc:
        print_exception(exc)
        sys.exit(2)

    _execute_operation(operation)


def _execute_operation(operation: Operation):
    printer = IndentingPrinter(CONSOLE_STDOUT)

    try:
        config = unwrap(_CONFIG)

        operation.init(config, printer)
        operation.pre_execute()

        exit_code = asyncio.run(operation.execute())

        operation.post_execute()
        sys.exit(exit_code)

    except Exception as exc:
        print_exception(exc)
        sys.exit(2)


if __name__ == "__main__":
    cli()
