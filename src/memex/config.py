"""Configuration loading from environment variables and memex.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_CONFIG_FILENAME = "memex.toml"
_USER_CONFIG_DIR = Path.home() / ".config" / "memex"
_DEFAULT_ROOT = Path.home() / ".memex" / "memory"

DEFAULT_LLM_COMMAND = "amp agent run"
DEFAULT_PRESETS = {
    "amp": "amp agent run",
    "claude": "claude -p",
    "ollama": "ollama run llama3",
}


def expand_path(path: str | Path) -> Path:
    """Expand a leading ``~`` to the home directory."""
    return Path(path).expanduser()


def _as_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class StorageConfig:
    """Where the memory lives."""

    root: Path = _DEFAULT_ROOT
    auto_commit: bool = True

    @property
    def inbox_dir(self) -> Path:
        return self.root / "inbox"


@dataclass
class LLMConfig:
    """Generation backend configuration."""

    backend: str = "shell"
    command: str = DEFAULT_LLM_COMMAND
    model: str | None = None
    timeout: int = 300
    presets: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_PRESETS))

    def resolved_command(self) -> str:
        """``command`` may name a preset instead of a literal command line."""
        return self.presets.get(self.command, self.command)


@dataclass
class ScheduleConfig:
    """Intervals for the `serve` daemon."""

    consolidate_interval_hours: float = 2
    defrag_interval_hours: float = 24


@dataclass
class AgentsMdConfig:
    """AGENTS.md files whose managed section defrag rewrites."""

    targets: list[Path] = field(
        default_factory=lambda: [Path.home() / ".config" / "amp" / "AGENTS.md"]
    )


@dataclass
class MemexConfig:
    """Top-level memex configuration."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    agents_md: AgentsMdConfig = field(default_factory=AgentsMdConfig)
    pid_file: Path = Path.home() / ".memex" / "memex.pid"
    log_level: str = "INFO"


def load_config(config_path: Path | None = None) -> MemexConfig:
    """Load configuration from environment variables and optional memex.toml.

    Priority: environment variables > memex.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        # Search current dir and ~/.config/memex/
        for candidate in [Path.cwd() / _CONFIG_FILENAME, _USER_CONFIG_DIR / _CONFIG_FILENAME]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    storage_data = file_data.get("storage", {})
    llm_data = file_data.get("llm", {})
    schedule_data = file_data.get("schedule", {})
    agents_md_data = file_data.get("agents_md", {})

    presets = dict(DEFAULT_PRESETS)
    presets.update(llm_data.get("presets", {}))

    default_targets = AgentsMdConfig().targets
    targets = agents_md_data.get("targets")

    config = MemexConfig(
        storage=StorageConfig(
            root=expand_path(os.getenv("MEMEX_ROOT", storage_data.get("root", str(_DEFAULT_ROOT)))),
            auto_commit=_as_bool(
                os.getenv("MEMEX_AUTO_COMMIT", storage_data.get("auto_commit", True))
            ),
        ),
        llm=LLMConfig(
            backend=os.getenv("MEMEX_LLM_BACKEND", llm_data.get("backend", "shell")),
            command=os.getenv("MEMEX_LLM_COMMAND", llm_data.get("command", DEFAULT_LLM_COMMAND)),
            model=os.getenv("MEMEX_LLM_MODEL", llm_data.get("model")),
            timeout=int(os.getenv("MEMEX_LLM_TIMEOUT", llm_data.get("timeout", 300))),
            presets=presets,
        ),
        schedule=ScheduleConfig(
            consolidate_interval_hours=float(schedule_data.get("consolidate_interval_hours", 2)),
            defrag_interval_hours=float(schedule_data.get("defrag_interval_hours", 24)),
        ),
        agents_md=AgentsMdConfig(
            targets=[expand_path(t) for t in targets] if targets is not None else default_targets,
        ),
        pid_file=expand_path(file_data.get("pid_file", str(Path.home() / ".memex" / "memex.pid"))),
        log_level=os.getenv("MEMEX_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
    return config
