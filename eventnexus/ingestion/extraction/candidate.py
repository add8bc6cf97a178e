"""Raw extraction output of a single listing item."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class RawCandidate:
    """
    Unnormalized fields for one detected item on a source page.

    Only ``title`` is required; an item without one is dropped before
    normalization. Every other field stays None when the page lacks it.
    """

    title: str | None
    url: str | None = None
    start_text: str | None = None
    end_text: str | None = None
    location_text: str | None = None
    image_url: str | None = None
    description: str | None = None
    category: str | None = None
    tags: list[str] = field(default_factory=list)

    @property
    def has_title(self) -> bool:
        return bool(self.title and self.title.strip())
