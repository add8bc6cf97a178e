from eventnexus.ingestion.extraction.candidate import RawCandidate
from eventnexus.ingestion.extraction.markup import MarkupDocument, Node

__all__ = ["MarkupDocument", "Node", "RawCandidate"]
