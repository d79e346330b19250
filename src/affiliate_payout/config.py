"""Payout engine parameters — cadence lengths, timeouts, batch bounds.

Parameters are read from config/payout_params.json and may be overridden
per deployment through PAYOUT_<FIELD> environment variables (a .env file
next to the config directory is loaded first).

The height constants model a fixed block-production rate: with the
defaults, 144 heights of 600 seconds make one day.
"""

from __future__ import annotations

import dataclasses
import json
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from affiliate_payout.models.payout import MAX_SPLIT_RECIPIENTS

PARAMS_FILENAME = "payout_params.json"
ENV_PREFIX = "PAYOUT_"


@dataclass(frozen=True)
class PayoutParams:
    """Validated engine parameters.

    Loaded via from_config_dir(). The defaults match the reference
    deployment and are what tests use unless they override a field.
    """

    heights_per_day: int = 144
    weekly_days: int = 7
    monthly_days: int = 30
    height_seconds: int = 600
    transfer_timeout_seconds: float = 5.0
    max_batch_size: int = 20
    max_due_per_run: int = 100
    max_split_recipients: int = MAX_SPLIT_RECIPIENTS

    def __post_init__(self) -> None:
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if value <= 0:
                raise ValueError(f"Payout parameter {f.name} must be positive, got {value}")
        if self.max_split_recipients > MAX_SPLIT_RECIPIENTS:
            raise ValueError(
                f"max_split_recipients cannot exceed {MAX_SPLIT_RECIPIENTS}, "
                f"got {self.max_split_recipients}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PayoutParams:
        known = {f.name: f for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ValueError(f"Unknown payout parameters: {', '.join(unknown)}")
        values: Dict[str, Any] = {}
        for name, raw in data.items():
            caster = float if name == "transfer_timeout_seconds" else int
            values[name] = caster(raw)
        return cls(**values)

    @classmethod
    def from_config_dir(
        cls,
        config_dir: Optional[Path] = None,
        environ: Optional[Dict[str, str]] = None,
    ) -> PayoutParams:
        """Load payout_params.json (if present) and apply env overrides."""
        data: Dict[str, Any] = {}
        if config_dir is not None:
            load_dotenv(config_dir.parent / ".env")
            params_path = config_dir / PARAMS_FILENAME
            if params_path.exists():
                data.update(json.loads(params_path.read_text(encoding="utf-8")))

        env = os.environ if environ is None else environ
        for f in dataclasses.fields(cls):
            override = env.get(ENV_PREFIX + f.name.upper())
            if override is not None and override.strip():
                data[f.name] = override.strip()
        return cls.from_dict(data)

    def height_at(self, moment: Optional[datetime] = None) -> int:
        """Logical height corresponding to a wall-clock moment."""
        if moment is None:
            moment = datetime.now(timezone.utc)
        return int(moment.timestamp()) // self.height_seconds
