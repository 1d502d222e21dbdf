"""
Validation package.

Exposes `InputValidator`, the low-level input rules used at service entry
points.
"""

from src.core.validation.input_validator import InputValidator

__all__ = [
    "InputValidator",
]
