#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

from __future__ import annotations

import copy
from collections import Counter
from typing import TYPE_CHECKING, Any

from rulekeeper.models.document import BRANCHES_KEY, RULESETS_KEY

if TYPE_CHECKING:
    from collections.abc import Mapping

_REPLACED_KEYS = (RULESETS_KEY, BRANCHES_KEY)


def merge_into(existing: Mapping[str, Any] | None, computed: Mapping[str, Any]) -> dict[str, Any]:
    """
    Merges the computed rulesets and branches into an existing document.

    Keys present in computed replace the existing values wholesale, keys absent in computed
    leave the existing values untouched. Any other key of the existing document is preserved,
    including its position. An empty result means that nothing needs to be written.
    """
    result = copy.deepcopy(dict(existing)) if existing is not None else {}

    for key in _REPLACED_KEYS:
        if key in computed:
            result[key] = copy.deepcopy(computed[key])

    return result


def _freeze(value: Any) -> Any:
    if isinstance(value, dict):
        return tuple(sorted((k, _freeze(v)) for k, v in value.items()))
    elif isinstance(value, list):
        return tuple(_freeze(x) for x in value)
    else:
        return value


def _same_multiset(expected: list[Any], actual: list[Any]) -> bool:
    try:
        return Counter(_freeze(x) for x in expected) == Counter(_freeze(x) for x in actual)
    except TypeError:
        # unhashable or incomparable items, fall back to pairwise matching
        remaining = list(actual)
        for item in expected:
            if item not in remaining:
                return False
            remaining.remove(item)
        return len(remaining) == 0


def structural_diff(template: Any, actual: Any) -> Any:
    """
    Computes the differences of actual with regard to the template.

    Only keys contained in the template are considered. Lists are compared as multisets,
    i.e. ignoring the order but respecting the frequency of elements, and the whole actual
    list is reported on difference. Returns None if there is no difference.
    """
    if isinstance(template, dict) and isinstance(actual, dict):
        diff = {}

        for key, expected_value in template.items():
            if key not in actual:
                continue

            actual_value = actual[key]

            if isinstance(expected_value, dict) and isinstance(actual_value, dict):
                nested = structural_diff(expected_value, actual_value)
                if nested is not None:
                    diff[key] = nested
            elif isinstance(expected_value, list) and isinstance(actual_value, list):
                if not _same_multiset(expected_value, actual_value):
                    diff[key] = actual_value
            elif expected_value != actual_value:
                diff[key] = actual_value

        return diff if len(diff) > 0 else None

    elif isinstance(template, list) and isinstance(actual, list):
        return None if _same_multiset(template, actual) else actual

    else:
        return None if template == actual else actual


def flatten_enabled(obj: Any) -> Any:
    """
    Replaces every mapping of the exact shape {enabled: bool} with its boolean value.
    """
    if isinstance(obj, dict):
        if len(obj) == 1 and isinstance(obj.get("enabled"), bool):
            return obj["enabled"]

        return {k: flatten_enabled(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [flatten_enabled(x) for x in obj]
    else:
        return obj
