"""ScreenGuard — real-time PII detection and visual masking for rendered content."""

from .types import PiiCategory, Finding, Rect
from .patterns import scan_patterns
from .detector import PiiDetector
from .content import Document, Element, TextNode
from .extractor import extract_text_units
from .layout import FlowLayout
from .geometry import map_span_to_rects
from .overlay import OverlayManager
from .scheduler import ScanScheduler, ScanResult
from .scoring import score, label
from .coordinator import Coordinator
from .config import create_coordinator, load_config, load_from_yaml
from .html_loader import load_html

__all__ = [
    "PiiCategory", "Finding", "Rect",
    "scan_patterns", "PiiDetector",
    "Document", "Element", "TextNode",
    "extract_text_units", "FlowLayout", "map_span_to_rects",
    "OverlayManager", "ScanScheduler", "ScanResult",
    "score", "label",
    "Coordinator",
    "create_coordinator", "load_config", "load_from_yaml",
    "load_html",
]
__version__ = "0.1.0"
