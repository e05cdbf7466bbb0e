"""Utility helpers for the LLM Vision library."""

from .text import format_megabytes, parse_header_pairs, parse_json_object

__all__ = ["format_megabytes", "parse_header_pairs", "parse_json_object"]
