"""Memory module for persistent fact storage and synthesis."""

from .explicit import derive_key, extract_explicit_memory, normalize_key
from .extractor import FactExtractor, FactParseError, parse_facts
from .manager import MemoryManager
from .models import Fact
from .store import MemoryStore
from .synthesizer import SYNTHESIS_THRESHOLD, RollingSynthesizer, SynthesisResult

__all__ = [
    "SYNTHESIS_THRESHOLD",
    "Fact",
    "FactExtractor",
    "FactParseError",
    "MemoryManager",
    "MemoryStore",
    "RollingSynthesizer",
    "SynthesisResult",
    "derive_key",
    "extract_explicit_memory",
    "normalize_key",
    "parse_facts",
]
