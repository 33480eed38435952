"""Data models for the bookify pipeline."""

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional


class JobState(str, Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    COMPLETED = "Completed"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)


@dataclass(frozen=True)
class JobStatus:
    """Immutable snapshot of a conversion job.

    A new snapshot replaces the previous one on every update; use
    :meth:`evolve` to derive it.
    """
    job_id: str
    state: JobState
    pages_total: int = 0
    pages_rendered: int = 0
    error_message: Optional[str] = None
    output_file_path: Optional[str] = None

    def evolve(self, **changes) -> "JobStatus":
        return dataclasses.replace(self, **changes)

    @property
    def progress_percent(self) -> float:
        if self.pages_total <= 0:
            return 0
        return round(self.pages_rendered / self.pages_total * 100, 2)

    def to_dict(self) -> dict:
        return {
            "jobId": self.job_id,
            "state": self.state.value,
            "pagesTotal": self.pages_total,
            "pagesRendered": self.pages_rendered,
            "errorMessage": self.error_message,
            "outputFilePath": self.output_file_path,
        }


@dataclass
class TocNode:
    """A chapter in the inferred table of contents."""
    title: str
    url: str
    children: list["TocNode"] = field(default_factory=list)

    def iter_urls(self) -> Iterator[str]:
        """Yield every URL in the tree, pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node.url
            stack.extend(reversed(node.children))

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "url": self.url,
            "children": [child.to_dict() for child in self.children],
        }


@dataclass
class RenderOutcome:
    """Result of rendering the page at ``index`` of the ordered page list."""
    index: int
    url: str
    output_path: Optional[Path] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.output_path is not None and self.error is None


@dataclass
class PdfOptions:
    """Page setup used when printing a page to PDF."""
    format: str = "A4"
    print_background: bool = True
    margin_top: str = "1cm"
    margin_right: str = "1cm"
    margin_bottom: str = "1cm"
    margin_left: str = "1cm"
    scale: Optional[float] = None
    display_header_footer: bool = False
    header_template: Optional[str] = None
    footer_template: Optional[str] = None

    def to_playwright(self) -> dict:
        options = {
            "format": self.format,
            "print_background": self.print_background,
            "margin": {
                "top": self.margin_top,
                "right": self.margin_right,
                "bottom": self.margin_bottom,
                "left": self.margin_left,
            },
            "display_header_footer": self.display_header_footer,
        }
        if self.scale is not None:
            options["scale"] = self.scale
        if self.header_template is not None:
            options["header_template"] = self.header_template
        if self.footer_template is not None:
            options["footer_template"] = self.footer_template
        return options
