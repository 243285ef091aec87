"""流式处理模块"""

from .trackers import ProcessingStatus, ResponsePhase, StreamState
from .parsers import BalancedBlockScanner, BlockSpan, ScanResult
from .normalizer import ChunkNormalizer
from .sections import Section, SectionAccumulator, SectionType
from .classifier import Classification, StreamChunkClassifier
from .extractor import ExtractedBlock, ExtractionResult, ModificationExtractor
from .processor import (
    ChunkOutcome,
    ResponseClosedError,
    StreamProcessor,
    StreamTransportError,
    UnknownResponseError,
    get_stream_processor,
    reduce_chunk,
    replay_capture,
)

__all__ = [
    "BalancedBlockScanner",
    "BlockSpan",
    "ChunkNormalizer",
    "ChunkOutcome",
    "Classification",
    "ExtractedBlock",
    "ExtractionResult",
    "ModificationExtractor",
    "ProcessingStatus",
    "ResponseClosedError",
    "ResponsePhase",
    "ScanResult",
    "Section",
    "SectionAccumulator",
    "SectionType",
    "StreamChunkClassifier",
    "StreamProcessor",
    "StreamState",
    "StreamTransportError",
    "UnknownResponseError",
    "get_stream_processor",
    "reduce_chunk",
    "replay_capture",
]
