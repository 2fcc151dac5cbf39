"""Subtitle re-encoding toolkit: detect a file's charset and rewrite it as UTF-8."""

from .batch import BatchEvent, BatchScheduler, EventKind
from .config import AppConfig, build_batch_options, build_conversion_options, load_config
from .core import BatchAbortedError, ConversionError, ConversionService, ErrorCode
from .models import BatchOptions, BatchStats, ConversionOptions, ConversionResult, StripOptions
from .stripping import strip_formatting

__all__ = [
    "AppConfig",
    "load_config",
    "build_batch_options",
    "build_conversion_options",
    "BatchAbortedError",
    "BatchEvent",
    "BatchOptions",
    "BatchScheduler",
    "BatchStats",
    "ConversionError",
    "ConversionOptions",
    "ConversionResult",
    "ConversionService",
    "ErrorCode",
    "EventKind",
    "StripOptions",
    "strip_formatting",
]
