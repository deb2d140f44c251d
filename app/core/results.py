"""Outcome types returned by the gateway operations.

The router turns each outcome into a JSON envelope; the status code depends
only on the outcome type.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Union


@dataclass(frozen=True)
class Success:
    message: str
    payload: Dict[str, Any] = field(default_factory=dict)
    status_code: int = 200


@dataclass(frozen=True)
class ValidationFailure:
    message: str
    status_code: int = 400


@dataclass(frozen=True)
class NotFound:
    message: str
    status_code: int = 404


@dataclass(frozen=True)
class UpstreamFailure:
    message: str
    status_code: int = 502


Outcome = Union[Success, ValidationFailure, NotFound, UpstreamFailure]


def to_envelope(outcome: Outcome) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "success": isinstance(outcome, Success),
        "message": outcome.message,
    }
    if isinstance(outcome, Success):
        body.update(outcome.payload)
    return body
