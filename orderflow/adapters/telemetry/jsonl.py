"""JSON Lines Telemetry adapter.

Implements the Telemetry port by appending one JSON object per event to a file.
Secret-bearing fields are redacted before anything is written, including inside
nested mappings; key matching is case-insensitive.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Optional

REDACTION_TOKEN = "***REDACTED***"

DEFAULT_SECRET_KEYS = frozenset(
    {"mnemonic", "wallet_mnemonic", "private_key", "secret", "password", "token"}
)


class JsonlTelemetry:
    def __init__(
        self,
        sink_path: Path | str,
        component: str = "orderflow",
        secret_keys: Iterable[str] = DEFAULT_SECRET_KEYS,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._sink_path = Path(sink_path)
        self._component = component
        self._secret_keys = frozenset(k.lower() for k in secret_keys)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def sink_path(self) -> Path:
        return self._sink_path

    def log(self, event: str, **fields: Any) -> None:
        component = fields.pop("component", self._component)
        redacted: set[str] = set()
        payload = self._redact(fields, redacted, prefix="")

        record: dict[str, Any] = {
            "event": event,
            "ts_utc": self._clock().isoformat(),
            "component": component,
            **payload,
        }
        if redacted:
            record["redacted_fields"] = sorted(redacted)
        self._append(record)

    def _redact(self, fields: Mapping[str, Any], redacted: set[str], prefix: str) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for key, value in fields.items():
            path = f"{prefix}{key}"
            if str(key).lower() in self._secret_keys:
                out[key] = REDACTION_TOKEN
                redacted.add(path)
            elif isinstance(value, Mapping):
                out[key] = self._redact(value, redacted, prefix=f"{path}.")
            else:
                out[key] = value
        return out

    def _append(self, record: Mapping[str, Any]) -> None:
        line = json.dumps(record, sort_keys=True, separators=(",", ":"), default=str)
        self._sink_path.parent.mkdir(parents=True, exist_ok=True)
        with self._sink_path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")
