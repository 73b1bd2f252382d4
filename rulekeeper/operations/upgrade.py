#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

from __future__ import annotations

import os

from aiofiles import os as aios
from aiofiles import ospath
from jsonbender.core import BendingException  # type: ignore

from rulekeeper.document import merge_into
from rulekeeper.logging import get_logger
from rulekeeper.orchestrator import DocumentError, load_document, write_document
from rulekeeper.translate import upgrade_document

from . import Operation

_logger = get_logger(__name__)


class UpgradeOperation(Operation):
    """
    Upgrades the rulesets of all declarative documents in the repos directory to the evaluated
    ruleset layout, in place.
    """

    def __init__(self, repos_dir: str | None = None) -> None:
        super().__init__()
        self._repos_dir = repos_dir

    @property
    def repos_dir(self) -> str:
        return self._repos_dir if self._repos_dir is not None else self.config.repos_dir

    def pre_execute(self) -> None:
        self.printer.println(f"Upgrading documents in '[bold]{self.repos_dir}[/]':")

    async def execute(self) -> int:
        if not await ospath.isdir(self.repos_dir):
            raise RuntimeError(f"unable to scan directory '{self.repos_dir}'")

        file_names = sorted(x for x in await aios.listdir(self.repos_dir) if x.endswith(".yml"))

        updated = 0
        failed = 0

        self.printer.level_up()

        try:
            for file_name in file_names:
                path = os.path.join(self.repos_dir, file_name)

                try:
                    if await self._upgrade_file(path):
                        updated += 1
                except (DocumentError, OSError) as ex:
                    failed += 1
                    self.printer.print_error(f"error processing file '{path}':\n{ex}")
        finally:
            self.printer.level_down()

        self.printer.println(f"Upgraded {updated} of {len(file_names)} document(s), {failed} failed.")
        return 1 if failed > 0 else 0

    async def _upgrade_file(self, path: str) -> bool:
        document = await load_document(path)
        if document is None:
            return False

        try:
            upgraded = upgrade_document(document)
        except (BendingException, KeyError, TypeError, AttributeError) as ex:
            raise DocumentError(path, f"unexpected document structure: {ex!r}") from ex

        if upgraded is None:
            _logger.debug("document '%s' contains no rulesets, leaving it untouched", path)
            return False

        await write_document(path, merge_into(document, upgraded))
        self.printer.println(f"Successfully updated file: {path}")
        return True
