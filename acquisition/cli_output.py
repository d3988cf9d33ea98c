"""Output and formatting helpers for CLI commands."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .document import ScrapedDocument, ValidationResult


def validation_to_dict(result: ValidationResult) -> Dict[str, Any]:
    return {
        "url": result.url,
        "valid": result.valid,
        "status_code": result.status_code,
        "final_url": result.final_url,
        "error_kind": result.error_kind.value if result.error_kind else None,
        "error": result.error,
        "checked_at": result.checked_at,
    }


def format_validation_lines(results: Sequence[ValidationResult]) -> str:
    """One line per URL: ``OK|FAIL  status  url [-> final] [(error)]``."""
    lines = []
    for result in results:
        marker = "OK  " if result.valid else "FAIL"
        line = f"{marker}  {result.status_code or '---':>3}  {result.url}"
        if result.final_url:
            line += f" -> {result.final_url}"
        if result.error:
            line += f"  ({result.error})"
        lines.append(line)
    return "\n".join(lines)


def format_documents_markdown(
    documents: Sequence[ScrapedDocument],
    *,
    low_value_urls: Sequence[str] = (),
    warnings: Sequence[str] = (),
) -> str:
    """Concatenate documents as markdown with a header per source."""
    sections: List[str] = []
    for index, doc in enumerate(documents):
        if index > 0:
            sections.append("\n---\n")
        sections.append(f"# {doc.url}")
        sections.append(f"_Fetched: {doc.fetched_at}_")
        if doc.fallback_applied:
            sections.append("_Flagged low-value, kept as fallback_")
        sections.append("")
        sections.append(doc.text_content)

    if low_value_urls or warnings:
        sections.append("\n---\n")
        for warning in warnings:
            sections.append(f"> Warning: {warning}")
        for url in low_value_urls:
            sections.append(f"> Low-value: {url}")
    return "\n".join(sections)


def documents_payload(
    documents: Sequence[ScrapedDocument],
    *,
    topic: str,
    low_value_urls: Sequence[str] = (),
    warnings: Sequence[str] = (),
    **extra: Any,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "topic": topic,
        "documents": [doc.to_dict() for doc in documents],
        "low_value_urls": list(low_value_urls),
        "warnings": list(warnings),
        "summary": {
            "total": len(documents),
            "total_chars": sum(len(doc.text_content) for doc in documents),
        },
    }
    payload.update(extra)
    return payload


def write_output(text: str, output: Optional[str]) -> None:
    """Print ``text`` or write it to ``output``."""
    if output is None:
        print(text)
        return
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    logging.info("Wrote %s", path)


def dump_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)
