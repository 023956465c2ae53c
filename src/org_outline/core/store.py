"""Published-document store fed by file-change events.

Parses run on a worker pool. Each document has a generation counter and at
most one parse in flight; content that arrives meanwhile is parked and parsed
next. A finished parse is only published if its generation is still the
latest, so an old buffer can never overwrite a newer one.
"""

import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from pathlib import PurePath

from loguru import logger

from org_outline.config import PipelineConfig
from org_outline.core.fingerprint.updates import diff_documents
from org_outline.core.importer.tokenizer import LineTokenizer
from org_outline.core.metadata.aggregator import MetadataAggregator
from org_outline.core.pipeline import IndexedDocument, parse_document, reclassify
from org_outline.core.tree.identity import document_id_for
from org_outline.models.metadata import GlobalMetadata
from org_outline.models.records import AdapterFailure, DocumentUpdate, ParseFailure
from org_outline.protocols import DocumentListener, TokenizerProtocol

Source = str | bytes


class DocumentStore:
    """Own published documents, their indices and the metadata aggregator."""

    def __init__(
        self,
        config: PipelineConfig | None = None,
        *,
        aggregator: MetadataAggregator | None = None,
        tokenizer: TokenizerProtocol | None = None,
        max_workers: int = 4,
        update_log_size: int = 100,
    ) -> None:
        self._config = config or PipelineConfig()
        self._tokenizer = tokenizer or LineTokenizer()
        self.aggregator = aggregator if aggregator is not None else MetadataAggregator()
        self._listeners: list[DocumentListener] = [self.aggregator]
        self._lock = threading.RLock()
        self._idle = threading.Condition(self._lock)
        self._documents: dict[str, IndexedDocument] = {}
        self._generations: dict[str, int] = {}
        self._in_flight: set[str] = set()
        self._pending: dict[str, tuple[str | PurePath, Source, int]] = {}
        self._failures: dict[str, ParseFailure] = {}
        self._updates: deque[DocumentUpdate] = deque(maxlen=update_log_size)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="org-parse"
        )

    def __enter__(self) -> "DocumentStore":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    @property
    def config(self) -> PipelineConfig:
        return self._config

    def add_listener(self, listener: DocumentListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    # --- File events ---

    def _bump(self, document_id: str) -> int:
        generation = self._generations.get(document_id, 0) + 1
        self._generations[document_id] = generation
        return generation

    def on_file_changed(self, path: str | PurePath, content: Source) -> None:
        """Schedule a parse of new file content."""
        document_id = document_id_for(path)
        with self._lock:
            generation = self._bump(document_id)
            if document_id in self._in_flight:
                self._pending[document_id] = (path, content, generation)
                logger.debug("Parse of {} in flight, parking generation {}", path, generation)
                return
            self._in_flight.add(document_id)
            config = self._config
        self._submit(document_id, path, content, generation, config)

    def on_file_removed(self, path: str | PurePath) -> None:
        """Drop a document. Any parse still in flight for it becomes stale."""
        document_id = document_id_for(path)
        with self._lock:
            self._bump(document_id)
            self._pending.pop(document_id, None)
            self._failures.pop(document_id, None)
            removed = self._documents.pop(document_id, None)
            if removed is None:
                return
            self._updates.append(diff_documents(removed.document, None))
            for listener in self._listeners:
                try:
                    listener.on_document_removed(document_id)
                except Exception:
                    logger.exception("Listener {} failed on removal", listener)
        logger.info("Removed {}", removed.document.path)

    def load(self, path: str | PurePath, content: Source) -> IndexedDocument | None:
        """Parse and publish synchronously. Returns None if the parse failed."""
        document_id = document_id_for(path)
        with self._lock:
            generation = self._bump(document_id)
            config = self._config
        indexed, failure = self._parse(document_id, path, content, config)
        with self._lock:
            if generation != self._generations.get(document_id):
                logger.debug("Discarding stale load of {}", path)
                return None
            return self._settle(document_id, indexed, failure)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no parse is in flight. Returns False on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: not self._in_flight, timeout)

    def reconfigure(self, config: PipelineConfig) -> None:
        """Apply a new configuration to all documents without re-parsing."""
        with self._lock:
            self._config = config
            for indexed in list(self._documents.values()):
                self._publish(reclassify(indexed, config))
            logger.info("Reclassified {} document(s)", len(self._documents))

    # --- Parsing ---

    def _parse(
        self,
        document_id: str,
        path: str | PurePath,
        content: Source,
        config: PipelineConfig,
    ) -> tuple[IndexedDocument | None, ParseFailure | None]:
        try:
            indexed = parse_document(content, path=path, config=config, tokenizer=self._tokenizer)
        except AdapterFailure as e:
            return None, ParseFailure(
                document_id=document_id,
                path=PurePath(path).as_posix(),
                message=e.message,
                offset=e.offset,
            )
        except Exception as e:
            logger.exception("Unexpected error parsing {}", path)
            return None, ParseFailure(
                document_id=document_id,
                path=PurePath(path).as_posix(),
                message=f"Unexpected error: {e}",
            )
        return indexed, None

    def _run(
        self,
        document_id: str,
        path: str | PurePath,
        content: Source,
        generation: int,
        config: PipelineConfig,
    ) -> None:
        try:
            indexed, failure = self._parse(document_id, path, content, config)
            with self._lock:
                latest = self._generations.get(document_id)
                if generation != latest:
                    logger.debug(
                        "Discarding stale parse of {} (generation {}, latest {})",
                        path, generation, latest,
                    )
                else:
                    if indexed is not None and config is not self._config:
                        indexed = reclassify(indexed, self._config)
                    self._settle(document_id, indexed, failure)
        except Exception:
            logger.exception("Parse worker failed for {}", path)
        finally:
            next_job = self._take_pending(document_id)
        if next_job is not None:
            self._submit(document_id, *next_job)

    def _take_pending(
        self, document_id: str
    ) -> tuple[str | PurePath, Source, int, PipelineConfig] | None:
        """Pop the parked buffer, or release the in-flight slot if there is none.

        A parked buffer keeps the generation it arrived with, so one that a
        later ``load`` has overtaken is dropped here instead of published.
        """
        with self._lock:
            pending = self._pending.pop(document_id, None)
            if pending is not None:
                path, content, generation = pending
                if generation == self._generations.get(document_id):
                    return path, content, generation, self._config
                logger.debug("Dropping overtaken buffer of {} (generation {})", path, generation)
            self._in_flight.discard(document_id)
            self._idle.notify_all()
            return None

    def _submit(
        self,
        document_id: str,
        path: str | PurePath,
        content: Source,
        generation: int,
        config: PipelineConfig,
    ) -> None:
        try:
            self._executor.submit(self._run, document_id, path, content, generation, config)
        except RuntimeError:
            logger.warning("Store is closed, not parsing {}", path)
            with self._lock:
                self._pending.pop(document_id, None)
                self._in_flight.discard(document_id)
                self._idle.notify_all()

    def _settle(
        self,
        document_id: str,
        indexed: IndexedDocument | None,
        failure: ParseFailure | None,
    ) -> IndexedDocument | None:
        if indexed is not None:
            self._publish(indexed)
            return indexed
        if failure is not None:
            self._record_failure(failure)
        return None

    def _publish(self, indexed: IndexedDocument) -> None:
        previous = self._documents.get(indexed.id)
        self._documents[indexed.id] = indexed
        self._failures.pop(indexed.id, None)
        update = diff_documents(previous.document if previous else None, indexed.document)
        self._updates.append(update)
        for listener in self._listeners:
            try:
                listener.on_document_published(indexed.document)
            except Exception:
                logger.exception("Listener {} failed on publish", listener)
        logger.info(
            "Published {} ({} headlines; {} added, {} removed, {} changed)",
            indexed.document.path, indexed.document.headline_count,
            len(update.added), len(update.removed), len(update.changed),
        )

    def _record_failure(self, failure: ParseFailure) -> None:
        self._failures[failure.document_id] = failure
        kept = "keeping previous version" if failure.document_id in self._documents else "not loaded"
        logger.error("Failed to parse {}: {} ({})", failure.path, failure.message, kept)
        for listener in self._listeners:
            on_failure = getattr(listener, "on_parse_failure", None)
            if on_failure is None:
                continue
            try:
                on_failure(failure)
            except Exception:
                logger.exception("Listener {} failed on parse failure", listener)

    # --- Readers ---

    def documents(self) -> list[IndexedDocument]:
        """All published documents, ordered by path."""
        with self._lock:
            current = list(self._documents.values())
        return sorted(current, key=lambda d: d.document.path)

    def get(self, document_id: str) -> IndexedDocument | None:
        with self._lock:
            return self._documents.get(document_id)

    def find(self, name: str) -> IndexedDocument | None:
        """Resolve a document by id, path, file name or title."""
        for indexed in self.documents():
            document = indexed.document
            if name in (document.id, document.path, PurePath(document.path).name, document.title):
                return indexed
        return None

    def find_headline(self, headline_id: str) -> IndexedDocument | None:
        """Return the document that contains a headline id."""
        document_id = headline_id.split("-", 1)[0]
        indexed = self.get(document_id)
        if indexed is not None and headline_id in indexed.navigation:
            return indexed
        return None

    def generation(self, document_id: str) -> int:
        with self._lock:
            return self._generations.get(document_id, 0)

    def failures(self) -> list[ParseFailure]:
        with self._lock:
            return list(self._failures.values())

    def updates(self) -> list[DocumentUpdate]:
        """Recent document updates, oldest first."""
        with self._lock:
            return list(self._updates)

    def metadata(self) -> GlobalMetadata:
        return self.aggregator.snapshot()
