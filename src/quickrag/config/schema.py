"""Configuration schema using Pydantic.

Why this exists:
- Type-safe configuration with validation
- Environment variable support (QUICKRAG_ prefix)
- Profiles for switching between OpenAI, local and offline setups
- One place that documents every knob of the load/split/store/retrieve/generate flow

How to extend:
1. Add new fields to existing config classes
2. Create new config classes for new components
3. Reference them from AppConfig
"""

from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EmbeddingProviderType(str, Enum):
    """Supported embedding providers."""

    OPENAI = "openai"
    LOCAL = "local"
    MOCK = "mock"


class LLMProviderType(str, Enum):
    """Supported chat model providers."""

    OPENAI = "openai"
    MOCK = "mock"


class VectorStoreType(str, Enum):
    """Supported vector stores."""

    CHROMA = "chroma"
    MEMORY = "memory"


class SearchType(str, Enum):
    """Retrieval strategies."""

    SIMILARITY = "similarity"
    MMR = "mmr"
    SIMILARITY_SCORE_THRESHOLD = "similarity_score_threshold"


class LengthUnit(str, Enum):
    """How the splitter measures chunk length."""

    CHARS = "chars"
    TOKENS = "tokens"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = LogLevel.INFO
    json_logs: bool = False
    enable_file: bool = False
    log_dir: Optional[Path] = None
    max_days: int = Field(default=30, gt=0)


class LoaderConfig(BaseModel):
    """Document loader configuration.

    css_classes restricts HTML parsing to elements carrying one of the classes,
    e.g. ["post-content", "post-title", "post-header"] for a typical blog post.
    """

    css_classes: list[str] = Field(default_factory=list)
    user_agent: str = "quickrag/0.1 (+https://pypi.org/project/quickrag/)"
    timeout: float = Field(default=30.0, gt=0)
    max_parallel: int = Field(default=5, gt=0)
    max_retries: int = Field(default=3, gt=0)
    continue_on_failure: bool = False


class SplitterConfig(BaseModel):
    """Recursive text splitter configuration."""

    chunk_size: int = Field(default=1000, gt=0, description="Maximum chunk length")
    chunk_overlap: int = Field(default=200, ge=0, description="Overlap between neighbouring chunks")
    separators: list[str] = Field(default_factory=lambda: ["\n\n", "\n", " ", ""])
    keep_separator: bool = True
    strip_whitespace: bool = True
    add_start_index: bool = True
    length_unit: LengthUnit = LengthUnit.CHARS
    encoding_name: str = "cl100k_base"

    @model_validator(mode="after")
    def overlap_smaller_than_size(self) -> "SplitterConfig":
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than chunk_size ({self.chunk_size})"
            )
        return self


class EmbeddingConfig(BaseModel):
    """Embedding provider configuration."""

    provider: EmbeddingProviderType = EmbeddingProviderType.OPENAI
    model_name: str = "text-embedding-3-small"
    api_key: Optional[str] = None
    batch_size: int = Field(default=64, gt=0)
    extra_params: dict[str, Any] = Field(default_factory=dict)


class LLMConfig(BaseModel):
    """Chat model configuration."""

    provider: LLMProviderType = LLMProviderType.OPENAI
    model_name: str = "gpt-3.5-turbo-0125"
    api_key: Optional[str] = None
    max_tokens: Optional[int] = Field(default=None, gt=0)
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    system_prompt: Optional[str] = None
    extra_params: dict[str, Any] = Field(default_factory=dict)


class VectorStoreConfig(BaseModel):
    """Vector store configuration."""

    store_type: VectorStoreType = VectorStoreType.CHROMA
    collection_name: str = "quickrag"
    persist_directory: Optional[Path] = None
    extra_params: dict[str, Any] = Field(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        """Expand ~ in paths."""
        if self.persist_directory:
            self.persist_directory = self.persist_directory.expanduser()


class RetrieverConfig(BaseModel):
    """Retriever configuration."""

    search_type: SearchType = SearchType.SIMILARITY
    k: int = Field(default=6, gt=0)
    fetch_k: int = Field(default=20, gt=0)
    lambda_mult: float = Field(default=0.5, ge=0.0, le=1.0)
    score_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def threshold_required(self) -> "RetrieverConfig":
        if self.search_type == SearchType.SIMILARITY_SCORE_THRESHOLD and self.score_threshold is None:
            raise ValueError("score_threshold is required for similarity_score_threshold search")
        return self


class PromptConfig(BaseModel):
    """Prompt selection: a prompt hub name or a template file."""

    name: str = "rlm/rag-prompt"
    template_path: Optional[Path] = None


class QueryConfig(BaseModel):
    """Answer generation limits."""

    max_context_length: int = Field(default=8000, gt=0, description="Context budget in characters")
    max_concurrency: int = Field(default=4, gt=0)
    no_context_answer: str = "I couldn't find any relevant information to answer your question."


class AppConfig(BaseSettings):
    """Main application configuration.

    Loads from:
    1. Config file (TOML)
    2. Environment variables (prefixed with QUICKRAG_)
    3. .env file
    """

    model_config = SettingsConfigDict(
        env_prefix="QUICKRAG_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    app_name: str = "quickrag"
    data_dir: Path = Field(default=Path.home() / ".quickrag")

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    loader: LoaderConfig = Field(default_factory=LoaderConfig)
    splitter: SplitterConfig = Field(default_factory=SplitterConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    vector_store: VectorStoreConfig = Field(default_factory=VectorStoreConfig)
    retriever: RetrieverConfig = Field(default_factory=RetrieverConfig)
    prompt: PromptConfig = Field(default_factory=PromptConfig)
    query: QueryConfig = Field(default_factory=QueryConfig)

    def model_post_init(self, __context: Any) -> None:
        """Post-initialization: create data directory and default the Chroma path."""
        self.data_dir = self.data_dir.expanduser()
        self.data_dir.mkdir(parents=True, exist_ok=True)
        if self.vector_store.persist_directory is None:
            self.vector_store.persist_directory = self.data_dir / "chroma"
        if self.logging.log_dir is None:
            self.logging.log_dir = self.data_dir / "logs"
