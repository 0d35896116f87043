from .formatter import format_code, next_counter, preview_format, should_reset_counter, validate_format
from .service import NumberingService

__all__ = [
    "format_code",
    "next_counter",
    "preview_format",
    "should_reset_counter",
    "validate_format",
    "NumberingService",
]
