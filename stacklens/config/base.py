"""Configuration dataclasses for the stacklens viewer."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, List, Optional

from stacklens.config.validation import ConfigValidator
from stacklens.profiling.implementation import DEFAULT_JIT_ADDRESS_PREFIXES, FuncMatcher
from stacklens.types import ImplementationFilter


@dataclass
class ViewerConfig:
    """How a call tree is filtered and displayed."""

    implementation: ImplementationFilter = "combined"
    """Implementation filter: combined, js or cpp"""

    inverted: bool = False
    """Show the inverted call tree (roots are the functions with self time)"""

    max_depth: Optional[int] = None
    """Deepest level printed by the tree command. None prints everything"""

    jit_address_prefixes: List[str] = field(
        default_factory=lambda: list(DEFAULT_JIT_ADDRESS_PREFIXES)
    )
    """Name prefixes of resource-less functions treated as JIT code"""

    transforms: str = ""
    """Transform stack applied before display, in URL token form"""

    log_level: str = "INFO"
    """Minimum loguru level for console output"""

    show_lib: bool = True
    """Show each function's library next to its name"""

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValidationError: If a value is invalid, with suggestions
        """
        ConfigValidator.validate_implementation(self.implementation)
        ConfigValidator.validate_positive(self.max_depth, "max_depth", typical_values="5, 10, 20")
        ConfigValidator.validate_prefixes(self.jit_address_prefixes, "jit_address_prefixes")
        ConfigValidator.validate_log_level(self.log_level)

    def matcher(self) -> FuncMatcher:
        return FuncMatcher(jit_address_prefixes=tuple(self.jit_address_prefixes))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
