"""Shared fixtures."""

from pathlib import Path

import pytest

from quickrag.config.schema import (
    AppConfig,
    EmbeddingConfig,
    LLMConfig,
    SplitterConfig,
    VectorStoreConfig,
)
from quickrag.entities import Document, DocumentType
from quickrag.observability.logging import configure_logging
from quickrag.providers.fake import FakeEmbeddingProvider, FakeLLMProvider
from quickrag.storage.memory import InMemoryVectorStore

AGENT_POST = """LLM Powered Autonomous Agents

Building agents with LLM (large language model) as its core controller is a cool concept.

Task decomposition can be done by LLM with simple prompting like "Steps for XYZ.", by using task-specific instructions, or with human inputs.

Self-reflection is a vital aspect that allows autonomous agents to improve iteratively by refining past action decisions and correcting previous mistakes.

Memory can be defined as the processes used to acquire, store, retain, and later retrieve information."""


@pytest.fixture(autouse=True, scope="session")
def quiet_logging():
    """Route structlog through stderr at WARNING so command output stays parseable."""
    configure_logging(level="WARNING")


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Offline configuration: fake providers, in-memory store, small chunks."""
    return AppConfig(
        data_dir=tmp_path / "data",
        embedding=EmbeddingConfig(provider="mock", model_name="fake-embedding", batch_size=2),
        llm=LLMConfig(provider="mock", model_name="fake-llm"),
        vector_store=VectorStoreConfig(store_type="memory", collection_name="test"),
        splitter=SplitterConfig(chunk_size=200, chunk_overlap=20),
    )


@pytest.fixture
def agent_document() -> Document:
    return Document(
        source="https://example.com/agent",
        doc_type=DocumentType.HTML,
        title="LLM Powered Autonomous Agents",
        content=AGENT_POST,
        metadata={"source": "https://example.com/agent", "title": "LLM Powered Autonomous Agents"},
    )


@pytest.fixture
def embedding_provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def llm_provider() -> FakeLLMProvider:
    return FakeLLMProvider()


@pytest.fixture
async def memory_store(app_config: AppConfig) -> InMemoryVectorStore:
    store = InMemoryVectorStore(app_config.vector_store)
    await store.initialize()
    return store
