"""Configuration validation with helpful error messages and suggestions.

This module validates stacklens viewer settings and turns mistakes into
messages that list the valid options and suggest the closest spelling.
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from stacklens.types import IMPLEMENTATION_FILTERS
from stacklens.utils.logging_config import LOG_LEVELS


class ValidationError(Exception):
    """Validation error carrying a formatted, user facing message."""

    pass


class ConfigValidator:
    """Validates configuration with helpful error messages and suggestions."""

    VALID_IMPLEMENTATIONS = list(IMPLEMENTATION_FILTERS)
    VALID_LOG_LEVELS = list(LOG_LEVELS)
    VALID_TRANSFORMS = ["f", "mcn", "ms", "ff", "mf", "df", "cfs", "rec"]

    IMPLEMENTATION_DESCRIPTIONS = {
        "combined": "Every frame, JS and native",
        "js": "JS frames plus native frames marked relevant for JS",
        "cpp": "Native frames, hiding JS and JIT-generated code",
    }

    TRANSFORM_DESCRIPTIONS = {
        "f": "Focus on subtree - keep only the node's descendants",
        "mcn": "Merge call node - splice the node's children into its caller",
        "ms": "Merge subtree - fold the node and its descendants into its caller",
        "ff": "Focus on function - re-root stacks at the function's outermost call",
        "mf": "Merge function - remove the function everywhere, time goes to callers",
        "df": "Drop function - drop every sample that calls the function",
        "cfs": "Collapse function - fold everything the function calls into it",
        "rec": "Collapse direct recursion - merge A -> A -> A into one A",
    }

    @staticmethod
    def suggest_correction(
        invalid: str, valid_options: List[str], n: int = 1, cutoff: float = 0.6
    ) -> Optional[str]:
        """Suggest the closest valid option.

        Parameters
        ----------
        invalid : str
            Invalid value provided by user
        valid_options : List[str]
            List of valid options
        n : int, optional
            Number of suggestions to consider, by default 1
        cutoff : float, optional
            Similarity threshold (0-1), by default 0.6

        Returns
        -------
        Optional[str]
            Closest match if found, None otherwise
        """
        matches = get_close_matches(invalid, valid_options, n=n, cutoff=cutoff)
        return matches[0] if matches else None

    @classmethod
    def format_enum_error(
        cls,
        param_name: str,
        invalid_value: str,
        valid_options: List[str],
        descriptions: Optional[Dict[str, str]] = None,
        help_flag: Optional[str] = None,
    ) -> str:
        """Format error message for invalid enum values with suggestions.

        Parameters
        ----------
        param_name : str
            Name of the parameter
        invalid_value : str
            Invalid value provided
        valid_options : List[str]
            List of valid options
        descriptions : Optional[Dict[str, str]], optional
            Descriptions for each option
        help_flag : Optional[str], optional
            CLI help flag for more info

        Returns
        -------
        str
            Formatted error message
        """
        lines = [f"Invalid {param_name}: '{invalid_value}'\n"]

        lines.append("Valid options:")
        for option in valid_options:
            desc = descriptions.get(option, "") if descriptions else ""
            if desc:
                lines.append(f"  - '{option}' → {desc}")
            else:
                lines.append(f"  - '{option}'")

        suggestion = cls.suggest_correction(invalid_value, valid_options)
        if suggestion:
            lines.append(f"\nDid you mean '{suggestion}'?")

        if help_flag:
            lines.append(f"\nFor more info: stacklens {help_flag}")

        return "\n".join(lines)

    @classmethod
    def format_range_error(
        cls,
        param_name: str,
        invalid_value: Any,
        valid_range: str,
        typical_values: Optional[str] = None,
    ) -> str:
        lines = [f"Invalid {param_name}: {invalid_value}"]
        lines.append(f"  → Must be {valid_range}")
        if typical_values:
            lines.append(f"  → Typical values: {typical_values}")
        return "\n".join(lines)

    @classmethod
    def validate_implementation(cls, value: Optional[str]) -> None:
        """Validate an implementation filter.

        Raises
        ------
        ValidationError
            If the filter is not one of ``combined``, ``js`` or ``cpp``
        """
        if value is None:
            return
        if value not in cls.VALID_IMPLEMENTATIONS:
            raise ValidationError(
                cls.format_enum_error(
                    param_name="implementation",
                    invalid_value=value,
                    valid_options=cls.VALID_IMPLEMENTATIONS,
                    descriptions=cls.IMPLEMENTATION_DESCRIPTIONS,
                    help_flag="tree --help",
                )
            )

    @classmethod
    def validate_log_level(cls, value: str) -> None:
        if value.upper() not in cls.VALID_LOG_LEVELS:
            raise ValidationError(
                cls.format_enum_error(
                    param_name="log_level",
                    invalid_value=value,
                    valid_options=cls.VALID_LOG_LEVELS,
                )
            )

    @classmethod
    def validate_positive(
        cls, value: Optional[int], param_name: str, typical_values: Optional[str] = None
    ) -> None:
        """Validate that an optional value is positive.

        Raises
        ------
        ValidationError
            If value is set and not positive
        """
        if value is not None and value <= 0:
            raise ValidationError(
                cls.format_range_error(
                    param_name=param_name,
                    invalid_value=value,
                    valid_range="positive (> 0)",
                    typical_values=typical_values,
                )
            )

    @classmethod
    def validate_prefixes(cls, value: Any, param_name: str) -> None:
        if not isinstance(value, (list, tuple)) or not all(isinstance(p, str) and p for p in value):
            raise ValidationError(
                cls.format_range_error(
                    param_name=param_name,
                    invalid_value=value,
                    valid_range="a list of non-empty strings",
                    typical_values='["0x"]',
                )
            )

    @classmethod
    def print_help_topic(cls, topic: str, console: Optional[Console] = None) -> None:
        """Print detailed help for a topic (implementation, transforms)."""
        console = console or Console()

        if topic == "implementation":
            cls._print_table(
                console,
                "Implementation Filters",
                "Filter",
                cls.IMPLEMENTATION_DESCRIPTIONS,
            )
            console.print("\nUsage: --implementation <filter>")
            console.print("Example: --implementation js")
        elif topic == "transforms":
            cls._print_table(console, "Transforms", "Short Key", cls.TRANSFORM_DESCRIPTIONS)
            console.print("\nPath token: <key>-<implementation>-<encoded path>[-i]")
            console.print("Function token: <key>-<func index>, or rec-<implementation>-<func index>")
            console.print("Example: --transforms f-combined-0w2~mcn-js-3")
        else:
            console.print(f"[red]Unknown help topic: {topic}[/red]")
            console.print("\nAvailable topics: implementation, transforms")

    @staticmethod
    def _print_table(console: Console, title: str, key_name: str, rows: Dict[str, str]) -> None:
        table = Table(title=title, show_header=True, header_style="bold magenta")
        table.add_column(key_name, style="cyan", no_wrap=True)
        table.add_column("Description", style="white")
        for key, description in rows.items():
            table.add_row(key, description)
        console.print(table)
