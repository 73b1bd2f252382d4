#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

from __future__ import annotations

import dataclasses
from abc import ABC
from typing import TYPE_CHECKING, Any, TypeVar, final

from jsonbender import OptionalS, bend  # type: ignore

from rulekeeper.utils import UNSET, is_unset

if TYPE_CHECKING:
    from collections.abc import Mapping

MT = TypeVar("MT", bound="ModelObject")


@dataclasses.dataclass
class ModelObject(ABC):
    """
    The abstract base class for any model object.

    Model objects are plain values with structural equality. They can be created from the
    declarative document shape (model data) as well as from the data returned by the GitHub API
    (provider data), both conversions being described as jsonbender mappings.
    """

    def __post_init__(self):
        """
        Assigns to all field which are UNSET their default value, if one is available.
        """
        for field in self.all_fields():
            value = self.__getattribute__(field.name)
            if is_unset(value):
                if field.default is not dataclasses.MISSING:
                    self.__setattr__(field.name, field.default)
                elif field.default_factory is not dataclasses.MISSING:
                    self.__setattr__(field.name, field.default_factory())

    @classmethod
    def all_fields(cls) -> list[dataclasses.Field]:
        return list(dataclasses.fields(cls))

    def keys(self, exclude_unset_keys: bool = True) -> list[str]:
        result = []

        for field in self.all_fields():
            if exclude_unset_keys and is_unset(self.__getattribute__(field.name)):
                continue

            result.append(field.name)

        return result

    def to_model_dict(self) -> dict[str, Any]:
        result = {}

        for key in self.keys():
            result[key] = _to_model_value(self.__getattribute__(key))

        return result

    @classmethod
    @final
    def from_model_data(cls: type[MT], data: Mapping[str, Any]) -> MT:
        mapping = cls.get_mapping_from_model()
        return cls(**bend(mapping, data))  # type: ignore

    @classmethod
    def get_mapping_from_model(cls) -> dict[str, Any]:
        return {k: OptionalS(k, default=UNSET) for k in (x.name for x in cls.all_fields())}

    @classmethod
    @final
    def from_provider_data(cls: type[MT], data: Mapping[str, Any]) -> MT:
        mapping = cls.get_mapping_from_provider(data)
        return cls(**bend(mapping, data))  # type: ignore

    @classmethod
    def get_mapping_from_provider(cls, data: Mapping[str, Any]) -> dict[str, Any]:
        return cls.get_mapping_from_model()


def _to_model_value(value: Any) -> Any:
    if isinstance(value, ModelObject):
        return value.to_model_dict()
    elif isinstance(value, list):
        return [_to_model_value(x) for x in value]
    else:
        return value
