# Obliterator - Configuration
"""
Parameter sets for the registered algorithms.

A :class:`SegmentationConfig` keeps one parameter dict per algorithm (keyed
by display name) plus the currently selected algorithm. Every change is
validated by constructing the algorithm with the new values, and
:meth:`SegmentationConfig.create_algorithm` hands out a fresh instance built
from a deep copy, so callers never share mutable parameter state.
"""

import copy
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from .algorithms import SegmentationAlgorithm, available_algorithms, get_algorithm_class
from .algorithms.base import from_pydantic_error
from .errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_ALGORITHM = '2D Otsu'


def builtin_defaults() -> dict[str, dict[str, Any]]:
    """Default parameters of every registered algorithm."""
    return {
        name: get_algorithm_class(name)().parameters()
        for name in available_algorithms()
    }


def _resolve(name: str) -> str:
    return get_algorithm_class(name).name


class SegmentationConfig(BaseModel):
    """Per-algorithm parameters and the current algorithm selection.

    Parameters:
        current_algorithm: Display name of the selected algorithm
        algorithm_parameters: Parameter dict per algorithm display name,
            missing algorithms and parameters fall back to the defaults
    """

    model_config = ConfigDict(extra='forbid')

    current_algorithm: str = DEFAULT_ALGORITHM
    algorithm_parameters: dict[str, dict[str, Any]] = Field(default_factory=builtin_defaults)

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except PydanticValidationError as e:
            raise from_pydantic_error(self.__class__, e) from e

    @model_validator(mode='after')
    def _merge_with_defaults(self) -> 'SegmentationConfig':
        """Resolve algorithm names and validate every parameter set."""
        self.current_algorithm = _resolve(self.current_algorithm)
        merged = builtin_defaults()
        for name, params in self.algorithm_parameters.items():
            merged[_resolve(name)].update(params)
        self.algorithm_parameters = {
            name: get_algorithm_class(name)._create(params).parameters()
            for name, params in merged.items()
        }
        return self

    @classmethod
    def create_default(cls) -> 'SegmentationConfig':
        return cls()

    @staticmethod
    def available_algorithms() -> list[str]:
        return available_algorithms()

    def set_current_algorithm(self, name: str) -> None:
        self.current_algorithm = _resolve(name)
        logger.debug(f"Current algorithm: {self.current_algorithm}")

    def parameters(self, algorithm: str | None = None) -> dict[str, Any]:
        """Copy of the parameters of ``algorithm`` (default: the current one)."""
        name = _resolve(algorithm or self.current_algorithm)
        return copy.deepcopy(self.algorithm_parameters[name])

    def set_parameter(self, name: str, value: Any, algorithm: str | None = None) -> None:
        """Validate and store a single parameter.

        :raises ValidationError: If the parameter is unknown or the value is
            out of range. The stored parameters are left unchanged.
        """
        algorithm_name = _resolve(algorithm or self.current_algorithm)
        params = self.parameters(algorithm_name)
        if name not in params:
            raise ValidationError(f"Unknown parameter for {algorithm_name}: {name}")
        params[name] = value
        algorithm_cls = get_algorithm_class(algorithm_name)
        self.algorithm_parameters[algorithm_name] = algorithm_cls._create(params).parameters()
        logger.debug(f"{algorithm_name}: {name} = {value!r}")

    def create_algorithm(self, algorithm: str | None = None) -> SegmentationAlgorithm:
        """New algorithm instance from a snapshot of the stored parameters."""
        name = _resolve(algorithm or self.current_algorithm)
        return get_algorithm_class(name)._create(self.parameters(name))

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode='json')

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'SegmentationConfig':
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise from_pydantic_error(cls, e) from e

    def to_json(self) -> str:
        return self.model_dump_json(indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> 'SegmentationConfig':
        try:
            return cls.model_validate_json(json_str)
        except PydanticValidationError as e:
            raise from_pydantic_error(cls, e) from e


__all__ = ['SegmentationConfig', 'DEFAULT_ALGORITHM', 'builtin_defaults']
