"""Headline-level differences between two versions of a document."""

from org_outline.models.node import Document
from org_outline.models.records import DocumentUpdate


def diff_documents(old: Document | None, new: Document | None) -> DocumentUpdate:
    """Compare etags of two published versions of the same document.

    Either side may be None for a first publication or a removal.
    """
    if old is None and new is None:
        msg = "diff_documents needs at least one document"
        raise ValueError(msg)
    document_id = new.id if new is not None else old.id  # type: ignore[union-attr]
    old_etags = {h.id: h.etag for h in old.iter_headlines()} if old is not None else {}
    new_etags = {h.id: h.etag for h in new.iter_headlines()} if new is not None else {}

    return DocumentUpdate(
        document_id=document_id,
        added=tuple(i for i in new_etags if i not in old_etags),
        removed=tuple(i for i in old_etags if i not in new_etags),
        changed=tuple(
            i for i, etag in new_etags.items() if i in old_etags and old_etags[i] != etag
        ),
    )
