from .formatting import format_mode, format_size, parse_mode

__all__ = ["format_size", "format_mode", "parse_mode"]
