# ==============================
# Config Schemas (Pydantic)
# ==============================
"""
Pydantic settings models for nucleus.

Notes:
- Keep these schemas stable: many modules will depend on them.
- No env reads here. No file IO here. Pure types + defaults.
- loader.py builds a single Settings object with precedence merging.

Precedence (implemented in loader.py):
env > .env > configs/*.yaml > defaults
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from nucleus.contracts.tool_schema import Permission


DEFAULT_EXCLUDE_PATTERNS: List[str] = [
    ".git",
    ".hg",
    ".svn",
    "node_modules",
    "target",
    "__pycache__",
    ".venv",
    "venv",
    "dist",
    "build",
    ".idea",
    ".vscode",
    ".DS_Store",
    ".mypy_cache",
    ".pytest_cache",
    ".tox",
]

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant specializing in programming and development tasks."


# ==============================
# App Settings
# ==============================


class PathsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    repo_root: str = Field(default=".", description="Repo root (relative or absolute)")
    configs_dir: str = Field(default="configs", description="Configs directory")
    data_dir: str = Field(default="data", description="Runtime data directory")


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    env: str = Field(default="local", description="Environment name (local/stage/prod)")
    debug: bool = Field(default=False)
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)
    paths: PathsConfig = Field(default_factory=PathsConfig)


# ==============================
# Models Settings
# ==============================


class OllamaConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    base_url: str = Field(default="http://localhost:11434")
    timeout_seconds: float = Field(default=120.0, description="Read timeout per backend call")
    connect_timeout_seconds: float = Field(default=10.0)


class ModelsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    provider: str = Field(default="ollama")
    chat_model: str = Field(default="qwen3:0.6b")
    embedding_model: str = Field(default="nomic-embed-text")
    temperature: float = Field(default=0.6)
    ollama: OllamaConfig = Field(default_factory=OllamaConfig)


# ==============================
# Knowledge Settings
# ==============================


class KnowledgeConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    storage_path: str = Field(default="./data/nucleus_vectordb", description="Directory holding the store file")
    chunk_size: int = Field(default=512, description="Chunk length in characters")
    chunk_overlap: int = Field(default=50, description="Characters shared with the previous chunk")
    top_k: int = Field(default=5)
    extensions: List[str] = Field(default_factory=list, description="Empty means every text file")
    exclude_patterns: List[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS))
    autosave: bool = Field(default=True, description="Save the store after each indexing call")

    @field_validator("extensions")
    @classmethod
    def _normalize_extensions(cls, v: List[str]) -> List[str]:
        return [e.strip().lower().lstrip(".") for e in v if e and e.strip()]

    @model_validator(mode="after")
    def _check_chunking(self) -> "KnowledgeConfig":
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be a positive integer")
        if self.chunk_overlap < 0 or self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be >= 0 and strictly less than chunk_size")
        if self.top_k <= 0:
            raise ValueError("top_k must be a positive integer")
        return self


# ==============================
# Chat Settings
# ==============================


class ChatConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT)
    max_tool_iterations: int = Field(default=8, description="Hard bound on tool-execution rounds per query")
    query_timeout_seconds: Optional[float] = Field(default=120.0, description="None disables the deadline")

    @model_validator(mode="after")
    def _check_bounds(self) -> "ChatConfig":
        if self.max_tool_iterations < 1:
            raise ValueError("max_tool_iterations must be >= 1")
        return self


# ==============================
# Policies Settings
# ==============================


class PoliciesConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    granted_permission: Permission = Field(default=Permission.READ)
    allowed_roots: List[str] = Field(
        default_factory=list,
        description="If set, filesystem tools may only touch paths under these roots.",
    )
    command_timeout_seconds: float = Field(default=30.0)
    max_read_bytes: int = Field(default=200_000)

    @field_validator("granted_permission", mode="before")
    @classmethod
    def _parse_permission(cls, v: Any) -> Permission:
        return Permission.parse(v)


# ==============================
# Logging Settings
# ==============================


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    level: str = Field(default="INFO")
    console: bool = Field(default=True)
    json_lines: bool = Field(default=True, alias="json")


# ==============================
# Top-Level Settings
# ==============================


class Settings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    app: AppConfig = Field(default_factory=AppConfig)
    models: ModelsConfig = Field(default_factory=ModelsConfig)
    knowledge: KnowledgeConfig = Field(default_factory=KnowledgeConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    policies: PoliciesConfig = Field(default_factory=PoliciesConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def repo_root_path(self) -> Path:
        return Path(self.app.paths.repo_root).expanduser().resolve()

    def storage_dir(self) -> Path:
        p = Path(self.knowledge.storage_path).expanduser()
        if not p.is_absolute():
            p = self.repo_root_path() / p
        return p
