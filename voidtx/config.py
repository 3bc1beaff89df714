"""
Settlement limits.

Defaults mirror the module constants in ``voidtx.batch``. Deployments can
override them through the environment:

    VOIDTX_MIN_AMOUNT        minimum payment in RAO
    VOIDTX_MAX_RECIPIENTS    maximum payments per batch
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from voidtx.errors import ConfigError


# 0.0001 TAO. Keeps dust payments out of batches.
DEFAULT_MIN_AMOUNT = 100_000

# Bounds the worst-case cost of a single settlement call.
DEFAULT_MAX_RECIPIENTS = 100

ENV_MIN_AMOUNT = "VOIDTX_MIN_AMOUNT"
ENV_MAX_RECIPIENTS = "VOIDTX_MAX_RECIPIENTS"


@dataclass(frozen=True)
class SettlementConfig:
    """Per-engine settlement limits."""

    min_amount: int = DEFAULT_MIN_AMOUNT  # in RAO
    max_recipients: int = DEFAULT_MAX_RECIPIENTS

    def __post_init__(self):
        if isinstance(self.min_amount, bool) or not isinstance(self.min_amount, int):
            raise ConfigError(f"min_amount must be an integer, got {self.min_amount!r}")
        if self.min_amount <= 0:
            raise ConfigError(f"min_amount must be positive, got {self.min_amount}")
        if isinstance(self.max_recipients, bool) or not isinstance(self.max_recipients, int):
            raise ConfigError(
                f"max_recipients must be an integer, got {self.max_recipients!r}"
            )
        if self.max_recipients <= 0:
            raise ConfigError(
                f"max_recipients must be positive, got {self.max_recipients}"
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SettlementConfig":
        """Build a config from environment variables, falling back to defaults."""
        environ = os.environ if environ is None else environ
        return cls(
            min_amount=_read_int(environ, ENV_MIN_AMOUNT, DEFAULT_MIN_AMOUNT),
            max_recipients=_read_int(environ, ENV_MAX_RECIPIENTS, DEFAULT_MAX_RECIPIENTS),
        )


def _read_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got '{raw}'")
