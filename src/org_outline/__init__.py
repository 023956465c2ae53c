"""Read-only document model for org outline files."""

from org_outline.config import PipelineConfig, load_config
from org_outline.core.importer.tokenizer import LineTokenizer
from org_outline.core.metadata.aggregator import MetadataAggregator
from org_outline.core.pipeline import IndexedDocument, parse_document
from org_outline.core.store import DocumentStore
from org_outline.protocols import DocumentListener, TokenizerProtocol

__all__ = [
    "DocumentListener",
    "DocumentStore",
    "IndexedDocument",
    "LineTokenizer",
    "MetadataAggregator",
    "PipelineConfig",
    "TokenizerProtocol",
    "load_config",
    "parse_document",
]
