from __future__ import annotations

from .json_io import read_text, write_json, write_jsonl

__all__ = ["read_text", "write_json", "write_jsonl"]
