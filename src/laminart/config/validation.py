"""
Declarative configuration validation.

Configs list their rules in ``_validation_rules`` and call
``validate_config()`` from ``__post_init__``; every violation is collected
and reported in one ``ConfigurationError``.

Usage:
    @dataclass(frozen=True)
    class MyConfig(ValidatedConfig):
        learning_rate: float = 0.01
        capacity: int = 7

        _validation_rules = {
            'learning_rate': ('open_unit',),
            'capacity': ('positive_integer', 'range(3, 15)'),
        }

        def __post_init__(self) -> None:
            self.validate_config()

Author: Laminart Project
"""

from __future__ import annotations

import math
from typing import Any, Callable, ClassVar, Dict, List, Tuple

from laminart.errors import ConfigurationError


class ValidatorRegistry:
    """Registry of predefined validation rules.

    Usage:
        validator = ValidatorRegistry.get_validator('positive')
        validator(0.5, 'learning_rate')  # Passes
        validator(-0.1, 'learning_rate')  # Raises ConfigurationError
    """

    _validators: Dict[str, Callable[[Any, str], None]] = {}

    @classmethod
    def register(cls, name: str, validator: Callable[[Any, str], None]) -> None:
        """Register a validation function."""
        cls._validators[name] = validator

    @classmethod
    def get_validator(cls, rule: str) -> Callable[[Any, str], None]:
        """Get validator by name or parse a compound rule."""
        if rule.startswith('range('):
            return cls._parse_range_rule(rule)

        if rule in cls._validators:
            return cls._validators[rule]

        raise ValueError(f"Unknown validation rule: {rule}")

    @classmethod
    def _parse_range_rule(cls, rule: str) -> Callable[[Any, str], None]:
        """Parse range(min, max) rules (inclusive on both ends)."""
        inner = rule[6:-1]
        parts = [p.strip() for p in inner.split(',')]

        if len(parts) != 2:
            raise ValueError(f"Invalid range rule format: {rule}")

        min_val = float(parts[0])
        max_val = float(parts[1])

        def range_validator(value: Any, name: str) -> None:
            _require_numeric(value, name)
            if not (min_val <= value <= max_val):
                raise ConfigurationError(
                    f"{name}={value} outside valid range [{min_val}, {max_val}]"
                )

        return range_validator


def _require_numeric(value: Any, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{name} must be numeric, got {type(value).__name__}")


def _register_builtin_validators() -> None:
    """Register standard validation rules."""

    def positive(value: Any, name: str) -> None:
        """Value must be > 0."""
        _require_numeric(value, name)
        if value <= 0:
            raise ConfigurationError(f"{name}={value} must be positive")

    def non_negative(value: Any, name: str) -> None:
        """Value must be >= 0."""
        _require_numeric(value, name)
        if value < 0:
            raise ConfigurationError(f"{name}={value} must be non-negative")

    def finite(value: Any, name: str) -> None:
        """Value must be finite (not inf or nan)."""
        _require_numeric(value, name)
        if not math.isfinite(value):
            raise ConfigurationError(f"{name}={value} must be finite (not inf/nan)")

    def positive_integer(value: Any, name: str) -> None:
        """Value must be a positive integer."""
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(f"{name} must be integer, got {type(value).__name__}")
        if value <= 0:
            raise ConfigurationError(f"{name}={value} must be positive integer")

    def probability(value: Any, name: str) -> None:
        """Value must be in [0, 1]."""
        _require_numeric(value, name)
        if not (0.0 <= value <= 1.0):
            raise ConfigurationError(f"{name}={value} must be in [0, 1]")

    def open_unit(value: Any, name: str) -> None:
        """Value must be in (0, 1]. Used for learning rates."""
        _require_numeric(value, name)
        if not (0.0 < value <= 1.0):
            raise ConfigurationError(f"{name}={value} must be in (0, 1]")

    ValidatorRegistry.register('positive', positive)
    ValidatorRegistry.register('non_negative', non_negative)
    ValidatorRegistry.register('finite', finite)
    ValidatorRegistry.register('positive_integer', positive_integer)
    ValidatorRegistry.register('probability', probability)
    ValidatorRegistry.register('open_unit', open_unit)


_register_builtin_validators()


class ValidatedConfig:
    """Mixin for declarative config validation.

    The validation runs from ``__post_init__`` of the concrete dataclass.
    """

    _validation_rules: ClassVar[Dict[str, Tuple[str, ...]]] = {}

    def collect_errors(self) -> List[str]:
        """Apply ``_validation_rules`` and return the violation messages."""
        errors: List[str] = []

        for field_name, rules in self._validation_rules.items():
            if not hasattr(self, field_name):
                errors.append(f"Validation rule for non-existent field: {field_name}")
                continue

            value = getattr(self, field_name)
            for rule in rules:
                try:
                    ValidatorRegistry.get_validator(rule)(value, field_name)
                except ConfigurationError as e:
                    errors.append(str(e))
                    break

        return errors

    def validate_config(self, extra_errors: Tuple[str, ...] = ()) -> None:
        """Validate configuration based on ``_validation_rules``.

        Args:
            extra_errors: Cross-field violations found by the caller

        Raises:
            ConfigurationError: If any validation fails
        """
        errors = self.collect_errors() + list(extra_errors)
        if errors:
            raise ConfigurationError(
                f"{self.__class__.__name__} validation failed:\n"
                + "\n".join(f"  • {e}" for e in errors)
            )


def validate_learning_rate(rate: float, name: str = "learning_rate") -> float:
    """Check a per-call learning rate lies in [0, 1].

    Raises:
        ConfigurationError: If the rate is not numeric or outside [0, 1]
    """
    ValidatorRegistry.get_validator('probability')(rate, name)
    return float(rate)
