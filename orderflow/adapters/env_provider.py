"""
Environment-backed SecretsProvider.

Wallet credentials are only ever read from the process environment (or an injected
mapping in tests), never from config files or constants.
"""

from __future__ import annotations

import logging
import os
from typing import Mapping

from orderflow.ports.secrets_provider import SecretsProvider

_LOGGER = logging.getLogger(__name__)

# BIP-39 phrase lengths
MNEMONIC_WORD_COUNTS = frozenset({12, 15, 18, 21, 24})


class MissingSecretError(ValueError):
    """
    Raised when a logical secret cannot be resolved from the environment.
    """

    def __init__(self, secret_name: str, reason: str = "unavailable") -> None:
        super().__init__(secret_name)
        self.secret_name = secret_name
        self.reason = reason

    def __str__(self) -> str:
        return f"Secret '{self.secret_name}' is {self.reason}"


class EnvSecretsProvider(SecretsProvider):
    def __init__(
        self,
        prefix: str = "ORDERFLOW_SECRET_",
        allowed: dict[str, str] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        """
        Only allow-listed logical names resolve; everything else is missing.

        Args:
            prefix: Prepended to every environment variable suffix
            allowed: Extra logical name -> suffix entries
            environ: Lookup source; defaults to os.environ
        """
        if not prefix:
            raise ValueError("Environment prefix must be a non-empty string")
        self._prefix = prefix
        self._allowed: dict[str, str] = {
            "wallet_mnemonic": "WALLET_MNEMONIC",
            "wallet_address": "WALLET_ADDRESS",
            **(allowed or {}),
        }
        self._environ = os.environ if environ is None else environ

    def env_var(self, secret_name: str) -> str:
        if secret_name not in self._allowed:
            raise MissingSecretError(secret_name, reason="not allow-listed")
        return f"{self._prefix}{self._allowed[secret_name]}"

    def get(self, secret_name: str) -> str:
        """Resolve a logical secret name; empty values count as missing."""
        value = self._environ.get(self.env_var(secret_name), "").strip()
        if not value:
            raise MissingSecretError(secret_name)

        _LOGGER.debug(
            "secret_resolved",
            extra={"event": "secret_resolved", "secret_name": secret_name, "source": "env"},
        )
        return value

    def get_mnemonic(self, secret_name: str = "wallet_mnemonic") -> str:
        """The wallet phrase with whitespace normalised; the word count must be BIP-39."""
        words = self.get(secret_name).split()
        if len(words) not in MNEMONIC_WORD_COUNTS:
            raise MissingSecretError(
                secret_name, reason=f"malformed ({len(words)} words, expected 12-24)"
            )
        return " ".join(words)
