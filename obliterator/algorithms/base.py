# Obliterator - Algorithm Base Classes
"""
Base classes for the segmentation algorithms.

Every algorithm is a pydantic model whose fields are its parameters. Ranges
are declared on the fields (``Field(ge=8)``, ``Field(gt=0.0, le=50.0)``), so
an instance that exists always holds a valid parameter set. Algorithms
serialize to dicts, JSON and a compact string form::

    'otsu2d histogram_bins=32 quality=Best'
    'iterativetriclass initial_threshold_method=median max_iterations=20'
"""

import re
import shlex
from abc import abstractmethod
from collections import ChainMap
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

import numpy as np
from pydantic import BaseModel, ConfigDict, TypeAdapter, computed_field
from pydantic import ValidationError as PydanticValidationError
from pydantic.fields import FieldInfo

from ..errors import ValidationError

_JSON_OBJECT = TypeAdapter(dict[str, Any])


@dataclass
class ParameterInfo:
    """Documentation for a single algorithm parameter."""

    name: str
    type: str  # 'float', 'int', 'bool', 'str', 'select'
    default: Any
    description: str = ''
    min_value: float | None = None
    max_value: float | None = None
    options: list[str] | None = None  # For select/enum types

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result = {
            'name': self.name,
            'type': self.type,
            'default': self.default,
        }
        if self.description:
            result['description'] = self.description
        if self.min_value is not None:
            result['min'] = self.min_value
        if self.max_value is not None:
            result['max'] = self.max_value
        if self.options:
            result['options'] = self.options
        return result


@dataclass
class AlgorithmInfo:
    """Documentation for an algorithm: description, parameters, names."""

    name: str  # Class name
    display_name: str
    description: str  # Full docstring
    summary: str  # First line of docstring
    requires_feature: bool = False

    parameters: list[ParameterInfo] = field(default_factory=list)
    aliases: list[str] = field(default_factory=list)
    examples: list[str] = field(default_factory=list)  # DSL usage examples

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'name': self.name,
            'display_name': self.display_name,
            'description': self.description,
            'summary': self.summary,
            'requires_feature': self.requires_feature,
            'parameters': [p.to_dict() for p in self.parameters],
            'aliases': self.aliases,
            'examples': self.examples,
        }

    def to_markdown(self) -> str:
        """Generate markdown documentation."""
        lines = [f'# {self.display_name}', '', self.description, '']

        if self.aliases:
            lines.append('## Aliases')
            lines.append('')
            for alias in self.aliases:
                lines.append(f'- `{alias}`')
            lines.append('')

        if self.parameters:
            lines.append('## Parameters')
            lines.append('')
            lines.append('| Name | Type | Default | Range | Description |')
            lines.append('|------|------|---------|-------|-------------|')
            for p in self.parameters:
                default_str = repr(p.default) if isinstance(p.default, str) else str(p.default)
                if p.options:
                    range_str = ', '.join(p.options)
                elif p.min_value is not None or p.max_value is not None:
                    low = '' if p.min_value is None else p.min_value
                    high = '' if p.max_value is None else p.max_value
                    range_str = f'{low} .. {high}'
                else:
                    range_str = ''
                lines.append(f'| `{p.name}` | {p.type} | {default_str} | {range_str} | {p.description} |')
            lines.append('')

        if self.requires_feature:
            lines.append('## Inputs')
            lines.append('')
            lines.append('- **intensity**: 2-D grid of 8-bit values')
            lines.append('- **feature**: neighborhood grid of the same shape (required)')
            lines.append('')

        if self.examples:
            lines.append('## Examples')
            lines.append('')
            for example in self.examples:
                lines.append('```')
                lines.append(example)
                lines.append('```')
            lines.append('')

        return '\n'.join(lines)


class SegmentationContext(ChainMap):
    """Thresholds, statistics and histories reported by algorithm runs.

    A context made with :meth:`branch` sees every value of its parent;
    values written to the branch stay in the branch.
    """

    def branch(self, name: str | None = None) -> 'SegmentationContext':
        child = self.new_child()
        if name:
            child['_branch'] = name
        return child

    def to_dict(self) -> dict[str, Any]:
        """Flat dict of all visible values, branch values win."""
        return dict(self)


def from_pydantic_error(model: type, error: PydanticValidationError) -> ValidationError:
    """Translate a pydantic error into the package's :class:`ValidationError`."""
    problems = []
    for item in error.errors():
        location = '.'.join(str(part) for part in item['loc'])
        problems.append(f"{location}: {item['msg']}" if location else item['msg'])
    return ValidationError(f"Invalid {model.__name__}: {'; '.join(problems)}")


# Global registry: class name, lowercase class name, display name and
# lowercase display name all map to the class
ALGORITHM_REGISTRY: dict[str, type['SegmentationAlgorithm']] = {}


def register_algorithm(cls: type['SegmentationAlgorithm']) -> type['SegmentationAlgorithm']:
    """Decorator to register an algorithm class."""
    ALGORITHM_REGISTRY[cls.__name__] = cls
    ALGORITHM_REGISTRY[cls.__name__.lower()] = cls
    if cls.name:
        ALGORITHM_REGISTRY[cls.name] = cls
        ALGORITHM_REGISTRY[cls.name.lower()] = cls
    return cls


def get_algorithm_class(name: str) -> type['SegmentationAlgorithm']:
    """Look up an algorithm class by class name or display name."""
    algorithm_cls = ALGORITHM_REGISTRY.get(name) or ALGORITHM_REGISTRY.get(name.lower())
    if algorithm_cls is None:
        raise ValidationError(f"Unknown algorithm: {name}")
    return algorithm_cls


def available_algorithms() -> list[str]:
    """Display names of all registered algorithms, in registration order."""
    names = []
    for cls in ALGORITHM_REGISTRY.values():
        if cls.name not in names:
            names.append(cls.name)
    return names


class SegmentationAlgorithm(BaseModel):
    """Base class for all segmentation algorithms.

    Subclasses declare their parameters as pydantic fields and implement
    :meth:`run`. :meth:`apply` returns only the mask. Invalid parameters
    raise :class:`~obliterator.errors.ValidationError`.

    Example:
        @register_algorithm
        class MyAlgorithm(SegmentationAlgorithm):
            name: ClassVar[str] = 'My Algorithm'

            histogram_bins: int = Field(default=64, ge=8, strict=True)

            def run(self, intensity, feature=None, context=None):
                ...
    """

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=False,
    )

    # Display name, also accepted by the registry
    name: ClassVar[str] = ''

    # Parameter filled by the first positional value of the string form
    primary_param: ClassVar[str | None] = None

    # Whether run() needs a feature grid
    requires_feature: ClassVar[bool] = False

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except PydanticValidationError as e:
            raise from_pydantic_error(self.__class__, e) from e

    @abstractmethod
    def run(
        self,
        intensity: np.ndarray,
        feature: np.ndarray | None = None,
        context: SegmentationContext | None = None,
    ) -> Any:
        """Segment ``intensity`` and return the full result object.

        :param intensity: 2-D grid of 8-bit intensities.
        :param feature: Neighborhood feature grid of the same shape.
        :param context: Optional context receiving thresholds and statistics.
        """

    def apply(
        self,
        intensity: np.ndarray,
        feature: np.ndarray | None = None,
        context: SegmentationContext | None = None,
    ) -> np.ndarray:
        """Segment ``intensity`` and return the ``uint8`` mask in {0, 255}."""
        return self.run(intensity, feature, context).mask

    def __call__(
        self,
        intensity: np.ndarray,
        feature: np.ndarray | None = None,
        context: SegmentationContext | None = None,
    ) -> np.ndarray:
        return self.apply(intensity, feature, context)

    @computed_field
    @property
    def type(self) -> str:
        """Algorithm type name for serialization."""
        return self.__class__.__name__

    def parameters(self) -> dict[str, Any]:
        """Parameter values, enums as their string values."""
        dumped = self.model_dump(mode='json')
        return {key: dumped[key] for key in self.__class__.model_fields}

    def to_dict(self) -> dict[str, Any]:
        """Serialize algorithm to dictionary."""
        return self.model_dump(mode='json')

    def to_json(self) -> str:
        """Serialize algorithm to JSON string."""
        return self.model_dump_json(indent=2)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'SegmentationAlgorithm':
        """Deserialize algorithm from dictionary."""
        params = dict(data)
        algorithm_type = params.pop('type', cls.__name__)
        return get_algorithm_class(algorithm_type)._create(params)

    @classmethod
    def from_json(cls, json_str: str) -> 'SegmentationAlgorithm':
        """Deserialize algorithm from JSON string."""
        try:
            data = _JSON_OBJECT.validate_json(json_str)
        except PydanticValidationError as e:
            raise from_pydantic_error(cls, e) from e
        return cls.from_dict(data)

    @classmethod
    def _create(cls, params: dict[str, Any]) -> 'SegmentationAlgorithm':
        try:
            return cls.model_validate(params)
        except PydanticValidationError as e:
            raise from_pydantic_error(cls, e) from e

    @classmethod
    def parse(cls, text: str) -> 'SegmentationAlgorithm':
        """Parse an algorithm from compact string format.

        Supports space-separated and parentheses syntax:
            'otsu2d'
            'otsu2d 32'                     -> Otsu2D(histogram_bins=32)
            'otsu2d histogram_bins=32 quality=Best'
            'iterativetriclass(max_iterations=20)'
        """
        call = re.fullmatch(r'\s*(\w+)\s*\((.*)\)\s*', text)
        if call:
            name = call.group(1)
            tokens = [token.strip() for token in call.group(2).split(',') if token.strip()]
        else:
            tokens = _tokenize(text)
            if not tokens:
                raise ValidationError(f"Invalid algorithm format: {text!r}")
            name, tokens = tokens[0], tokens[1:]

        algorithm_cls = get_algorithm_class(name)

        keywords: dict[str, Any] = {}
        positional = []
        for token in tokens:
            key, sep, value = token.partition('=')
            if sep:
                keywords[key.strip()] = _parse_value(value)
            else:
                positional.append(_parse_value(token))

        if positional:
            _assign_positional(algorithm_cls, positional, keywords)
        return algorithm_cls._create(keywords)

    def to_string(self) -> str:
        """Convert to compact string format, omitting default values.

            'otsu2d histogram_bins=32 quality=Best'
        """
        parts = [self.__class__.__name__.lower()]
        values = self.parameters()
        for key, info in self.__class__.model_fields.items():
            if getattr(self, key) == info.default:
                continue
            parts.append(f"{key}={_format_value(values[key])}")
        return ' '.join(parts)

    @classmethod
    def get_info(cls) -> AlgorithmInfo:
        """Get documentation for this algorithm.

        Example:
            info = Otsu2D.get_info()
            print(info.to_markdown())
        """
        return _build_algorithm_info(cls)

    @classmethod
    def help(cls) -> str:
        """Markdown help text for this algorithm."""
        return cls.get_info().to_markdown()


def _tokenize(text: str) -> list[str]:
    """Split the space-separated form, honoring quotes.

        "otsu2d quality='Best'" -> ['otsu2d', 'quality=Best']
    """
    try:
        return shlex.split(text)
    except ValueError as e:
        raise ValidationError(f"Invalid algorithm format: {text!r}: {e}") from e


def _parse_value(token: str) -> Any:
    """Best-effort conversion of a string token to bool, int, float or str."""
    token = token.strip()
    if len(token) >= 2 and token[0] == token[-1] and token[0] in '\'"':
        return token[1:-1]
    lowered = token.lower()
    if lowered in ('true', 'false'):
        return lowered == 'true'
    for convert in (int, float):
        try:
            return convert(token)
        except ValueError:
            continue
    return token


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, str) and (' ' in value or '=' in value):
        return f"'{value}'"
    return str(value)


def _assign_positional(
    algorithm_cls: type[SegmentationAlgorithm],
    positional: list[Any],
    keywords: dict[str, Any],
) -> None:
    """Fill parameters from positional values, primary parameter first.

    Explicit keywords are never overridden.
    """
    order = list(algorithm_cls.model_fields)
    primary = algorithm_cls.primary_param
    if primary in order:
        order.remove(primary)
        order.insert(0, primary)

    if len(positional) > len(order):
        raise ValidationError(
            f"Too many positional args for {algorithm_cls.__name__}: "
            f"got {len(positional)}, max {len(order)}"
        )
    for key, value in zip(order, positional):
        keywords.setdefault(key, value)


def _parse_docstring_params(docstring: str) -> dict[str, str]:
    """Extract parameter descriptions from the ``Parameters:`` section.

    Supports ``name: description`` and ``:param name: description`` lines
    with indented continuation lines.
    """
    params = {}
    if not docstring:
        return params

    current_param = None
    current_desc = []
    in_section = False

    for line in docstring.split('\n'):
        stripped = line.strip()

        if stripped in ('Parameters:', 'Args:'):
            in_section = True
            continue
        if not stripped:
            if current_param:
                params[current_param] = ' '.join(current_desc).strip()
                current_param = None
                current_desc = []
            in_section = False
            continue

        match = re.match(r':param\s+(\w+):\s*(.*)', stripped)
        if not match and in_section:
            match = re.match(r'^(\w+)(?:\s*\([^)]*\))?:\s*(.*)', stripped)
        if match:
            if current_param:
                params[current_param] = ' '.join(current_desc).strip()
            current_param = match.group(1)
            current_desc = [match.group(2)] if match.group(2) else []
            continue

        if current_param:
            current_desc.append(stripped)

    if current_param:
        params[current_param] = ' '.join(current_desc).strip()

    return params


def _extract_examples(docstring: str) -> list[str]:
    """Extract quoted DSL examples following an ``Example:`` line."""
    examples = []
    if not docstring:
        return examples

    in_example = False
    for line in docstring.split('\n'):
        line = line.strip()
        if line.lower().startswith('example'):
            in_example = True
            continue
        if in_example:
            examples.extend(re.findall(r"'([^']+)'", line))

    return examples


def _param_type(annotation: Any) -> str:
    """Documentation type of a field annotation."""
    if isinstance(annotation, type) and issubclass(annotation, Enum):
        return 'select'
    return {int: 'int', float: 'float', bool: 'bool', str: 'str'}.get(annotation, 'select')


def _field_bounds(info: FieldInfo) -> tuple[float | None, float | None]:
    """Lower and upper bound from the ``ge``/``gt``/``le``/``lt`` constraints."""
    low = high = None
    for constraint in info.metadata:
        low = getattr(constraint, 'ge', getattr(constraint, 'gt', low))
        high = getattr(constraint, 'le', getattr(constraint, 'lt', high))
    return low, high


def _build_algorithm_info(cls: type[SegmentationAlgorithm]) -> AlgorithmInfo:
    """Build AlgorithmInfo from an algorithm class."""
    docstring = cls.__doc__ or ''
    lines = docstring.strip().split('\n')
    summary = lines[0].strip() if lines else ''
    param_docs = _parse_docstring_params(docstring)

    parameters = []
    for key, info in cls.model_fields.items():
        default = info.default
        options = None
        if isinstance(info.annotation, type) and issubclass(info.annotation, Enum):
            options = [member.value for member in info.annotation]
        if isinstance(default, Enum):
            default = default.value
        low, high = _field_bounds(info)

        parameters.append(ParameterInfo(
            name=key,
            type=_param_type(info.annotation),
            default=default,
            description=param_docs.get(key, ''),
            min_value=low,
            max_value=high,
            options=options,
        ))

    aliases = sorted(
        key for key, value in ALGORITHM_REGISTRY.items()
        if value is cls and key != cls.__name__
    )

    return AlgorithmInfo(
        name=cls.__name__,
        display_name=cls.name or cls.__name__,
        description=docstring.strip(),
        summary=summary,
        requires_feature=cls.requires_feature,
        parameters=parameters,
        aliases=aliases,
        examples=_extract_examples(docstring),
    )


def get_algorithm_info(name: str) -> AlgorithmInfo | None:
    """Documentation for an algorithm by class or display name.

    Returns None if no such algorithm is registered.
    """
    cls = ALGORITHM_REGISTRY.get(name) or ALGORITHM_REGISTRY.get(name.lower())
    if cls is None:
        return None
    return cls.get_info()


__all__ = [
    'ParameterInfo',
    'AlgorithmInfo',
    'SegmentationContext',
    'SegmentationAlgorithm',
    'ALGORITHM_REGISTRY',
    'register_algorithm',
    'get_algorithm_class',
    'get_algorithm_info',
    'available_algorithms',
    'from_pydantic_error',
]
