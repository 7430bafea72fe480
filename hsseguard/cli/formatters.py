"""
Output formatters for HSSEGuard CLI.

This module provides formatting utilities for displaying data
in various formats: table, JSON, and YAML.
"""

import json
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

import yaml


def format_output(
    data: Any,
    output_format: str = "table",
    title: str | None = None,
) -> str:
    """
    Format data for output in the specified format.

    Args:
        data: Data to format.
        output_format: Output format (table, json, yaml).
        title: Optional title for table format.

    Returns:
        Formatted string.
    """
    if output_format == "json":
        return JsonFormatter.format(data)
    elif output_format == "yaml":
        return YamlFormatter.format(data)
    else:
        return TableFormatter.format(data, title=title)


class JsonFormatter:
    """Format data as JSON."""

    @staticmethod
    def format(data: Any, indent: int = 2) -> str:
        """Format data as JSON."""
        return json.dumps(
            data,
            indent=indent,
            default=_json_serializer,
            ensure_ascii=False,
        )


class YamlFormatter:
    """Format data as YAML."""

    @staticmethod
    def format(data: Any) -> str:
        """Format data as YAML."""
        return yaml.safe_dump(
            _convert_for_yaml(data),
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )


class TableFormatter:
    """Format data as a human-readable table."""

    @staticmethod
    def format(
        data: Any,
        title: str | None = None,
        max_width: int = 80,
    ) -> str:
        """
        Format data as a table.

        Args:
            data: Data to format.
            title: Optional title.
            max_width: Maximum column width.

        Returns:
            Formatted table string.
        """
        lines: list[str] = []

        if title:
            lines.append(title)
            lines.append("-" * len(title))
            lines.append("")

        if isinstance(data, dict):
            lines.extend(TableFormatter._format_dict(data, max_width))
        elif isinstance(data, list):
            lines.extend(TableFormatter._format_list(data, max_width))
        else:
            lines.append(str(data))

        return "\n".join(lines)

    @staticmethod
    def _format_dict(
        data: dict[str, Any],
        max_width: int,
        indent: int = 0,
    ) -> list[str]:
        lines: list[str] = []
        prefix = "  " * indent
        max_key_len = max((len(str(k)) for k in data), default=0)

        for key, value in data.items():
            key_str = str(key).ljust(max_key_len)

            if isinstance(value, dict):
                lines.append(f"{prefix}{key_str}:")
                lines.extend(TableFormatter._format_dict(value, max_width, indent + 1))
            elif isinstance(value, list):
                if not value:
                    lines.append(f"{prefix}{key_str}: []")
                elif all(isinstance(v, (str, int, float, bool)) for v in value):
                    list_str = ", ".join(str(v) for v in value)
                    if len(list_str) > max_width - len(key_str) - 4:
                        lines.append(f"{prefix}{key_str}:")
                        for item in value:
                            lines.append(f"{prefix}  - {item}")
                    else:
                        lines.append(f"{prefix}{key_str}: [{list_str}]")
                else:
                    lines.append(f"{prefix}{key_str}:")
                    lines.extend(TableFormatter._format_list(value, max_width, indent + 1))
            else:
                lines.append(f"{prefix}{key_str}: {_display(value)}")

        return lines

    @staticmethod
    def _format_list(
        data: list[Any],
        max_width: int,
        indent: int = 0,
    ) -> list[str]:
        lines: list[str] = []
        prefix = "  " * indent

        for i, item in enumerate(data):
            if isinstance(item, dict):
                if i > 0:
                    lines.append("")
                lines.append(f"{prefix}[{i + 1}]")
                lines.extend(TableFormatter._format_dict(item, max_width, indent + 1))
            elif isinstance(item, list):
                lines.append(f"{prefix}- ")
                lines.extend(TableFormatter._format_list(item, max_width, indent + 1))
            else:
                lines.append(f"{prefix}- {_display(item)}")

        return lines

    @staticmethod
    def format_table(
        headers: list[str],
        rows: list[list[Any]],
        max_col_width: int = 40,
    ) -> str:
        """
        Format data as an ASCII table.

        Args:
            headers: Column headers.
            rows: Data rows.
            max_col_width: Maximum column width.

        Returns:
            Formatted table string.
        """
        if not headers:
            return ""

        col_widths = [len(h) for h in headers]
        for row in rows:
            for i, cell in enumerate(row):
                if i < len(col_widths):
                    cell_len = len(_truncate(_display(cell), max_col_width))
                    col_widths[i] = max(col_widths[i], cell_len)

        row_format = " | ".join(f"{{:<{w}}}" for w in col_widths)
        separator = "-+-".join("-" * w for w in col_widths)

        lines = [row_format.format(*headers), separator]
        for row in rows:
            padded_row = list(row) + [""] * (len(headers) - len(row))
            cells = [_truncate(_display(cell), max_col_width) for cell in padded_row]
            lines.append(row_format.format(*cells))

        return "\n".join(lines)


def _display(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value)


def _json_serializer(obj: Any) -> Any:
    """JSON serializer for non-standard types."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, timedelta):
        return obj.total_seconds()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def _convert_for_yaml(data: Any) -> Any:
    """Convert data for YAML serialization."""
    if isinstance(data, datetime):
        return data.isoformat()
    if isinstance(data, timedelta):
        return data.total_seconds()
    if isinstance(data, Enum):
        return data.value
    if isinstance(data, dict):
        return {str(k): _convert_for_yaml(v) for k, v in data.items()}
    if isinstance(data, (list, tuple, set, frozenset)):
        return [_convert_for_yaml(v) for v in data]
    if hasattr(data, "to_dict"):
        return _convert_for_yaml(data.to_dict())
    return data


def _truncate(text: str, max_length: int) -> str:
    """Truncate text to maximum length."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."
