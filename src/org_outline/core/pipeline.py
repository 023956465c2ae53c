"""Per-document parse pipeline: adapt, build, index, resolve, fingerprint."""

import hashlib
from dataclasses import dataclass
from pathlib import PurePath

from loguru import logger

from org_outline.config import PipelineConfig
from org_outline.core.fingerprint.etag import stamp_document
from org_outline.core.importer.events import tokenize_and_adapt
from org_outline.core.importer.tokenizer import LineTokenizer
from org_outline.core.properties.resolver import PropertyResolver
from org_outline.core.todo.classifier import reclassify_document
from org_outline.core.tree.builder import build_document
from org_outline.core.tree.navigation import NavigationIndex
from org_outline.models.node import Document
from org_outline.protocols import TokenizerProtocol


@dataclass(frozen=True)
class IndexedDocument:
    """A published document together with its derived indices."""

    document: Document
    navigation: NavigationIndex
    resolver: PropertyResolver

    @property
    def id(self) -> str:
        return self.document.id


def source_hash(source: str | bytes) -> str:
    data = source.encode("utf-8") if isinstance(source, str) else source
    return hashlib.sha256(data).hexdigest()


def index_document(document: Document, config: PipelineConfig) -> IndexedDocument:
    """Stamp etags and build the navigation index and resolver."""
    draft_index = NavigationIndex.build(document)
    draft_resolver = PropertyResolver(
        document, draft_index, non_inheritable=config.non_inheritable_keys
    )
    stamped = stamp_document(document, draft_resolver, config.display_keys)
    navigation = NavigationIndex.build(stamped)
    return IndexedDocument(
        document=stamped,
        navigation=navigation,
        resolver=PropertyResolver(
            stamped, navigation, non_inheritable=config.non_inheritable_keys
        ),
    )


def parse_document(
    source: str | bytes,
    *,
    path: str | PurePath,
    config: PipelineConfig,
    tokenizer: TokenizerProtocol | None = None,
) -> IndexedDocument:
    """Parse one source buffer into an indexed, fingerprinted document.

    Args:
        source: File content, as text or undecoded bytes.
        path: Source path; the document id derives from it.
        config: Pipeline configuration.
        tokenizer: Tokenizer to use. Defaults to LineTokenizer.

    Returns:
        The indexed document.

    Raises:
        AdapterFailure: The buffer could not be tokenized at all.
    """
    tokenizer = tokenizer or LineTokenizer()
    adapted = tokenize_and_adapt(source, tokenizer)
    document = build_document(
        adapted.events,
        path=path,
        config=config,
        warnings=adapted.warnings,
        source_hash=source_hash(source),
    )
    if document.warnings:
        logger.info("{}: parsed with {} warning(s)", document.path, len(document.warnings))
    return index_document(document, config)


def reclassify(indexed: IndexedDocument, config: PipelineConfig) -> IndexedDocument:
    """Apply a new configuration to a document without re-parsing it."""
    document = reclassify_document(
        indexed.document, config.todo_keywords, priorities=config.priorities
    )
    return index_document(document, config)
