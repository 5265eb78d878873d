# src/llmchat/core/context.py
from __future__ import annotations
import logging
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import Callable, Dict, List, Optional, Sequence

from .errors import IngestError

log = logging.getLogger(__name__)

Extractor = Callable[[str], str]


def ingest_documents(
    paths: Sequence[str],
    extractor: Extractor,
    max_workers: Optional[int] = None,
) -> List[str]:
    """
    Extract text from every document in parallel, one worker per document.
    - results land in a pre-sized slot per input index, so order is stable
      no matter which worker finishes first
    - all workers are awaited before returning
    - on failure, pending work is cancelled and IngestError is raised; no
      partial list is ever returned
    """
    if not paths:
        return []

    slots: List[Optional[str]] = [None] * len(paths)
    pool = ThreadPoolExecutor(max_workers=max_workers or len(paths), thread_name_prefix="ingest")

    def work(idx: int, path: str) -> None:
        log.info("ingesting document path=%s", path)
        slots[idx] = extractor(path)

    futures: Dict[Future, int] = {}
    try:
        for idx, path in enumerate(paths):
            futures[pool.submit(work, idx, path)] = idx

        done, not_done = wait(futures, return_when=FIRST_EXCEPTION)
        failed = sorted(
            (futures[f] for f in done if not f.cancelled() and f.exception() is not None)
        )
        if failed:
            for f in not_done:
                f.cancel()
            idx = failed[0]
            exc = next(f for f, i in futures.items() if i == idx).exception()
            raise IngestError(paths[idx], str(exc)) from exc
    finally:
        # Waits for workers that already started; queued ones were cancelled above
        pool.shutdown(wait=True, cancel_futures=True)

    return [s if s is not None else "" for s in slots]


def wrap_in_xml_tags(text: str, tag: str) -> str:
    return f"<{tag}>{text}</{tag}>"


def build_system_prompt(system_prompt: str, documents: Sequence[str]) -> str:
    """
    Prefix the system prompt with a <documents> context block.
    Without documents the system prompt is returned unchanged.
    """
    if not documents:
        return system_prompt
    body = "".join(f"{wrap_in_xml_tags(doc, 'document')}\n" for doc in documents)
    block = wrap_in_xml_tags(body, "documents")
    return f"{block}\n{system_prompt}" if system_prompt else block
