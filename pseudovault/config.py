"""Configuration for pseudovault."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
import os
import yaml

from .errors import ConfigurationError


PROVIDERS = ("ollama", "remote", "relay", "none")


@dataclass
class OllamaConfig:
    """Local Ollama server settings."""
    url: str = "http://localhost:11434"


@dataclass
class RemoteConfig:
    """Remote OpenAI-compatible API settings."""
    url: str = ""
    api_key: str = ""


@dataclass
class RelayConfig:
    """Relay (bridge process) settings.

    ``url`` is the relay endpoint; ``target`` is the inference server the
    relay forwards to.
    """
    url: str = "http://localhost:18790/relay"
    target: str = "http://localhost:11434"


@dataclass
class DiscoveryConfig:
    """Discovery oracle settings."""
    provider: str = "ollama"  # "ollama" | "remote" | "relay" | "none"
    model: str = "gemma3:1b"
    timeout: float = 120.0
    max_workers: int = 2
    busy_retries: int = 3
    failure_retries: int = 1
    backoff_seconds: float = 2.0
    temperature: float = 0.1
    max_tokens: int = 2048
    light_chunk_chars: int = 6000
    heavy_chunk_chars: int = 24000
    chunk_overlap: int = 400
    light_model_markers: List[str] = field(default_factory=lambda: [
        ":0.5b", ":1b", ":1.5b", ":2b", ":3b", "-1b", "-2b", "-3b",
        "mini", "tiny", "nano", "small",
    ])
    unify_surface_forms: bool = True
    ollama: OllamaConfig = field(default_factory=OllamaConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    relay: RelayConfig = field(default_factory=RelayConfig)

    def validate(self):
        """Raise ConfigurationError for unusable settings."""
        if self.provider not in PROVIDERS:
            raise ConfigurationError(
                f"Unknown discovery provider '{self.provider}' (expected one of {', '.join(PROVIDERS)})"
            )
        for name in ("light_chunk_chars", "heavy_chunk_chars"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")
        if self.chunk_overlap < 0:
            raise ConfigurationError("chunk_overlap must not be negative")
        if self.chunk_overlap >= min(self.light_chunk_chars, self.heavy_chunk_chars):
            raise ConfigurationError("chunk_overlap must be smaller than the chunk size")
        if self.max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1")
        if self.provider == "remote" and not self.remote.url:
            raise ConfigurationError("remote provider requires remote.url")


@dataclass
class ScannerConfig:
    """Pattern scanner settings."""
    context_window: int = 50  # Characters before/after for context


@dataclass
class VaultConfig:
    """Tokenization settings."""
    censor_parts: bool = False  # Also censor single words of multi-word values


@dataclass
class Config:
    """Main configuration."""
    # Auto-accept double dictionary hits on names without oracle confirmation
    auto_accept_names: bool = True
    max_finding_words: int = 12

    scanner: ScannerConfig = field(default_factory=ScannerConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    vault: VaultConfig = field(default_factory=VaultConfig)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Config":
        """Load config from file or use defaults."""
        if path is None:
            path = Path.home() / ".pseudovault" / "config.yaml"
        path = Path(path)

        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}
                return cls._from_dict(data)

        return cls._from_dict({})

    @classmethod
    def _from_dict(cls, data: dict) -> "Config":
        """Create config from dict."""
        config = cls()

        if "auto_accept_names" in data:
            config.auto_accept_names = bool(data["auto_accept_names"])

        if "max_finding_words" in data:
            config.max_finding_words = int(data["max_finding_words"])

        if "scanner" in data:
            s = data["scanner"] or {}
            config.scanner.context_window = s.get("context_window", config.scanner.context_window)

        if "vault" in data:
            v = data["vault"] or {}
            config.vault.censor_parts = v.get("censor_parts", config.vault.censor_parts)

        d = data.get("discovery") or {}
        disc = config.discovery
        for key in (
            "provider", "model", "timeout", "max_workers", "busy_retries",
            "failure_retries", "backoff_seconds", "temperature", "max_tokens",
            "light_chunk_chars", "heavy_chunk_chars", "chunk_overlap",
            "light_model_markers", "unify_surface_forms",
        ):
            if key in d:
                setattr(disc, key, d[key])

        if "ollama" in d:
            disc.ollama.url = d["ollama"].get("url", disc.ollama.url)

        if "remote" in d:
            disc.remote.url = d["remote"].get("url", "")
            disc.remote.api_key = d["remote"].get("api_key", "")

        if "relay" in d:
            disc.relay.url = d["relay"].get("url", disc.relay.url)
            disc.relay.target = d["relay"].get("target", disc.relay.target)

        # Secrets come from the environment when set
        disc.remote.api_key = os.environ.get("PSEUDOVAULT_API_KEY", disc.remote.api_key)

        disc.validate()
        return config

    def save(self, path: Optional[Path] = None):
        """Save config to file. The API key is never written."""
        if path is None:
            path = Path.home() / ".pseudovault" / "config.yaml"
        path = Path(path)

        path.parent.mkdir(parents=True, exist_ok=True)

        disc = self.discovery
        data = {
            "auto_accept_names": self.auto_accept_names,
            "max_finding_words": self.max_finding_words,
            "scanner": {
                "context_window": self.scanner.context_window,
            },
            "vault": {
                "censor_parts": self.vault.censor_parts,
            },
            "discovery": {
                "provider": disc.provider,
                "model": disc.model,
                "timeout": disc.timeout,
                "max_workers": disc.max_workers,
                "busy_retries": disc.busy_retries,
                "failure_retries": disc.failure_retries,
                "backoff_seconds": disc.backoff_seconds,
                "temperature": disc.temperature,
                "max_tokens": disc.max_tokens,
                "light_chunk_chars": disc.light_chunk_chars,
                "heavy_chunk_chars": disc.heavy_chunk_chars,
                "chunk_overlap": disc.chunk_overlap,
                "light_model_markers": list(disc.light_model_markers),
                "unify_surface_forms": disc.unify_surface_forms,
                "ollama": {"url": disc.ollama.url},
                "remote": {"url": disc.remote.url},
                "relay": {"url": disc.relay.url, "target": disc.relay.target},
            },
        }

        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False)


# Default config instance (clients receive their config explicitly)
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the default config instance."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def set_config(config: Config):
    """Set the default config instance."""
    global _config
    _config = config
