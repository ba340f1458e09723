from __future__ import annotations

from dataclasses import dataclass


@dataclass
class WebConfig:
    timeout: int = 15
    max_bytes: int = 1_000_000
    max_output_chars: int = 8_000
