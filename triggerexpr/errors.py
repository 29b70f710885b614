# triggerexpr/errors.py
"""
Trigger Expression Error Types

Error handling infrastructure for the user-expression pipeline: reading
snippet text, building the binding catalog, compiling snippets into
callables, and evaluating them when events arrive.

Architecture Overview:
─────────────────────
┌─────────────────────────────────────────────────────────────────────────────┐
│                          Error Hierarchy                                     │
├─────────────────────────────────────────────────────────────────────────────┤
│  TriggerExprError (base)                                                    │
│  ├── CompileError             - Snippet text cannot become a callable       │
│  │   ├── ReadError            - Reader rejected the text                    │
│  │   ├── UnbalancedFormError  - Missing or stray closing delimiter          │
│  │   └── UnterminatedStringError                                            │
│  ├── CatalogError             - Malformed binding catalog (programming bug) │
│  └── EvaluationError          - Raised while running a compiled snippet     │
│      ├── UnboundSymbolError                                                 │
│      ├── ArityError                                                         │
│      ├── InteropError                                                       │
│      └── RecursionLimitError                                                │
└─────────────────────────────────────────────────────────────────────────────┘

Error Codes:
────────────
Each error has a unique code following the pattern EXPR-XXXX:
  - 1000-1999: Read errors
  - 2000-2999: Catalog errors
  - 3000-3999: Compile errors
  - 5000-5999: Runtime errors
  - 9000-9999: Internal errors

Example Usage:
──────────────
    from triggerexpr.errors import CompileError

    try:
        expr = compile_expression(text, table)
    except CompileError as exc:
        show_to_user(exc.to_gcc_format())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto, unique
from typing import Any, List, Optional


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR SEVERITY AND CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════════════════

@unique
class ErrorSeverity(Enum):
    """Severity levels for expression errors."""

    FATAL = "fatal"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@unique
class ErrorPhase(Enum):
    """Pipeline phase where the error occurred."""

    READ = "read"              # Text → tree
    CATALOG = "catalog"        # Binding catalog construction
    COMPILE = "compile"        # Scan + synthesis
    RUNTIME = "runtime"        # Invocation against an event
    INTERNAL = "internal"


@unique
class ErrorCategory(Enum):
    """Fine-grained error categories for filtering and statistics."""

    # Read
    UNTERMINATED_STRING = auto()
    UNBALANCED_DELIMITER = auto()
    UNEXPECTED_EOF = auto()
    MALFORMED_FORM = auto()

    # Catalog
    INVALID_BINDING = auto()
    UNKNOWN_PARENT = auto()
    CIRCULAR_INHERITANCE = auto()

    # Compile
    INVALID_SPECIAL_FORM = auto()

    # Runtime
    EXECUTION_ERROR = auto()
    UNDEFINED_SYMBOL = auto()
    ARITY_MISMATCH = auto()
    INTEROP_FAILURE = auto()
    RECURSION_LIMIT = auto()

    # Internal
    INTERNAL_ERROR = auto()


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CODES
# ═══════════════════════════════════════════════════════════════════════════════

class ErrorCode:
    """
    Structured error code.

    Codes follow the pattern EXPR-NNNN; see the module docstring for the
    numeric ranges.
    """

    __slots__ = ("prefix", "number", "category", "phase", "default_severity")

    def __init__(
        self,
        prefix: str,
        number: int,
        category: ErrorCategory,
        phase: ErrorPhase,
        default_severity: ErrorSeverity = ErrorSeverity.ERROR,
    ) -> None:
        self.prefix = prefix
        self.number = number
        self.category = category
        self.phase = phase
        self.default_severity = default_severity

    @property
    def code(self) -> str:
        """Get the full error code string."""
        return f"{self.prefix}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code!r}, {self.category.name})"

    def __hash__(self) -> int:
        return hash((self.prefix, self.number))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.prefix == other.prefix and self.number == other.number
        if isinstance(other, str):
            return self.code == other
        return False


class ExprErrorCodes:
    """Predefined error codes."""

    # READ ERRORS (1000-1999)
    UNTERMINATED_STRING = ErrorCode(
        "EXPR", 1001, ErrorCategory.UNTERMINATED_STRING, ErrorPhase.READ
    )
    UNBALANCED_DELIMITER = ErrorCode(
        "EXPR", 1002, ErrorCategory.UNBALANCED_DELIMITER, ErrorPhase.READ
    )
    UNEXPECTED_EOF = ErrorCode(
        "EXPR", 1003, ErrorCategory.UNEXPECTED_EOF, ErrorPhase.READ
    )
    MALFORMED_FORM = ErrorCode(
        "EXPR", 1004, ErrorCategory.MALFORMED_FORM, ErrorPhase.READ
    )

    # CATALOG ERRORS (2000-2999)
    INVALID_BINDING = ErrorCode(
        "EXPR", 2001, ErrorCategory.INVALID_BINDING, ErrorPhase.CATALOG,
        ErrorSeverity.FATAL
    )
    UNKNOWN_PARENT = ErrorCode(
        "EXPR", 2002, ErrorCategory.UNKNOWN_PARENT, ErrorPhase.CATALOG,
        ErrorSeverity.FATAL
    )
    CIRCULAR_INHERITANCE = ErrorCode(
        "EXPR", 2003, ErrorCategory.CIRCULAR_INHERITANCE, ErrorPhase.CATALOG,
        ErrorSeverity.FATAL
    )

    # COMPILE ERRORS (3000-3999)
    INVALID_SPECIAL_FORM = ErrorCode(
        "EXPR", 3001, ErrorCategory.INVALID_SPECIAL_FORM, ErrorPhase.COMPILE
    )

    # RUNTIME ERRORS (5000-5999)
    EXECUTION_ERROR = ErrorCode(
        "EXPR", 5000, ErrorCategory.EXECUTION_ERROR, ErrorPhase.RUNTIME
    )
    UNDEFINED_SYMBOL = ErrorCode(
        "EXPR", 5001, ErrorCategory.UNDEFINED_SYMBOL, ErrorPhase.RUNTIME
    )
    ARITY_MISMATCH = ErrorCode(
        "EXPR", 5002, ErrorCategory.ARITY_MISMATCH, ErrorPhase.RUNTIME
    )
    INTEROP_FAILURE = ErrorCode(
        "EXPR", 5003, ErrorCategory.INTEROP_FAILURE, ErrorPhase.RUNTIME
    )
    RECURSION_LIMIT = ErrorCode(
        "EXPR", 5004, ErrorCategory.RECURSION_LIMIT, ErrorPhase.RUNTIME
    )

    # INTERNAL (9000-9999)
    INTERNAL_ERROR = ErrorCode(
        "EXPR", 9000, ErrorCategory.INTERNAL_ERROR, ErrorPhase.INTERNAL,
        ErrorSeverity.FATAL
    )


# ═══════════════════════════════════════════════════════════════════════════════
# SOURCE LOCATION TYPES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SourceSpan:
    """
    A span of snippet text with start and end positions.

    Lines and columns are 1-based; 0 means unknown.
    """

    file: str = ""
    line: int = 0
    column: int = 0
    end_line: int = 0
    end_column: int = 0

    def __post_init__(self) -> None:
        # Normalize: if end not specified, use start
        if self.end_line == 0:
            object.__setattr__(self, "end_line", self.line)
        if self.end_column == 0:
            object.__setattr__(self, "end_column", self.column)

    @classmethod
    def at_offset(cls, text: str, offset: int, file: str = "") -> "SourceSpan":
        """Build a span for the character at *offset* within *text*."""
        offset = max(0, min(offset, len(text)))
        line = text.count("\n", 0, offset) + 1
        line_start = text.rfind("\n", 0, offset) + 1
        return cls(file=file, line=line, column=offset - line_start + 1)

    def __str__(self) -> str:
        if not self.file and self.line == 0:
            return "<unknown location>"

        parts = []
        if self.file:
            parts.append(self.file)
        if self.line > 0:
            parts.append(str(self.line))
            if self.column > 0:
                parts.append(str(self.column))

        return ":".join(parts)


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR MESSAGE FORMATTING
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class ErrorMessage:
    """
    A complete error message with all context.

    This is the internal representation of an error before it's printed or
    handed to the embedding UI.
    """

    code: ErrorCode
    message: str
    span: SourceSpan = field(default_factory=SourceSpan)
    severity: Optional[ErrorSeverity] = None  # None means use code's default
    hint: str = ""
    source_line: str = ""

    def __post_init__(self) -> None:
        if self.severity is None:
            self.severity = self.code.default_severity

    def with_source(self, line: str) -> "ErrorMessage":
        """Add the source line for display."""
        self.source_line = line
        return self

    def to_gcc_format(self) -> str:
        """Format as a GCC-style error message."""
        severity = self.severity.value if self.severity else "error"
        lines = [f"{self.span}: {severity}: {self.message} [{self.code}]"]

        # Add source line with caret if available
        if self.source_line:
            lines.append(f"    {self.source_line}")
            if self.span.column > 0:
                caret_pos = self.span.column - 1
                caret_len = max(1, self.span.end_column - self.span.column)
                lines.append(f"    {' ' * caret_pos}{'^' * caret_len}")

        if self.hint:
            lines.append(f"hint: {self.hint}")

        return "\n".join(lines)

    def __str__(self) -> str:
        return self.to_gcc_format()


# ═══════════════════════════════════════════════════════════════════════════════
# EXCEPTION CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class TriggerExprError(Exception):
    """
    Base exception for all expression errors.

    Carries structured error information that can be pretty-printed or
    serialized for the embedding UI.
    """

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        span: Optional[SourceSpan] = None,
        severity: Optional[ErrorSeverity] = None,
        cause: Optional[BaseException] = None,
        hint: str = "",
    ) -> None:
        super().__init__(message)
        self.error_message = ErrorMessage(
            code=code or ExprErrorCodes.INTERNAL_ERROR,
            message=message,
            span=span or SourceSpan(),
            severity=severity,
            hint=hint,
        )
        self.cause = cause

    @property
    def message(self) -> str:
        return self.error_message.message

    @property
    def code(self) -> ErrorCode:
        return self.error_message.code

    @property
    def span(self) -> SourceSpan:
        return self.error_message.span

    @property
    def severity(self) -> ErrorSeverity:
        return self.error_message.severity or ErrorSeverity.ERROR

    def to_gcc_format(self) -> str:
        """Format as a GCC-style error message."""
        return self.error_message.to_gcc_format()

    def __str__(self) -> str:
        return self.to_gcc_format()


# ───────────────────────────────────────────────────────────────────────────────
# COMPILE-TIME ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class CompileError(TriggerExprError):
    """A snippet could not be turned into a callable."""

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        span: Optional[SourceSpan] = None,
        source_text: str = "",
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message=message,
            code=code or ExprErrorCodes.MALFORMED_FORM,
            span=span,
            **kwargs,
        )
        self.source_text = source_text
        # Attach the offending line for caret display.
        if source_text and self.span.line > 0:
            lines = source_text.splitlines()
            if self.span.line <= len(lines):
                self.error_message.with_source(lines[self.span.line - 1])


class ReadError(CompileError):
    """The reader rejected the snippet text."""


class UnbalancedFormError(CompileError):
    """A form is missing its closing delimiter, or has a stray one."""

    def __init__(
        self,
        message: str,
        span: Optional[SourceSpan] = None,
        expected: str = "",
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("code", ExprErrorCodes.UNBALANCED_DELIMITER)
        super().__init__(message=message, span=span, **kwargs)
        self.expected = expected
        if expected and not self.error_message.hint:
            self.error_message.hint = f"Expected {expected!r}"


class UnterminatedStringError(CompileError):
    """String literal not properly closed."""

    def __init__(
        self,
        span: Optional[SourceSpan] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message='Unterminated string literal (missing closing ")',
            code=ExprErrorCodes.UNTERMINATED_STRING,
            span=span,
            hint="Add the closing quote character",
            **kwargs,
        )


# ───────────────────────────────────────────────────────────────────────────────
# CATALOG ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class CatalogError(TriggerExprError):
    """The binding catalog is malformed. Always a programming error."""

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message=message,
            code=code or ExprErrorCodes.INVALID_BINDING,
            **kwargs,
        )


# ───────────────────────────────────────────────────────────────────────────────
# RUNTIME ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class EvaluationError(TriggerExprError):
    """An error raised while evaluating a compiled snippet."""

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message=message,
            code=code or ExprErrorCodes.EXECUTION_ERROR,
            **kwargs,
        )


class UnboundSymbolError(EvaluationError):
    """A symbol has no value in the current scope."""

    def __init__(self, name: str, **kwargs: Any) -> None:
        super().__init__(
            message=f"Unable to resolve symbol: {name}",
            code=ExprErrorCodes.UNDEFINED_SYMBOL,
            **kwargs,
        )
        self.name = name


class ArityError(EvaluationError):
    """A function or special form received the wrong number of arguments."""

    def __init__(self, name: str, expected: str, got: int, **kwargs: Any) -> None:
        super().__init__(
            message=f"Wrong number of args ({got}) passed to {name}, expected {expected}",
            code=ExprErrorCodes.ARITY_MISMATCH,
            **kwargs,
        )
        self.name = name
        self.expected = expected
        self.got = got


class InteropError(EvaluationError):
    """Member access on a host object failed."""

    def __init__(self, member: str, target: Any, **kwargs: Any) -> None:
        super().__init__(
            message=f"No member {member!r} on {type(target).__name__}",
            code=ExprErrorCodes.INTEROP_FAILURE,
            **kwargs,
        )
        self.member = member


class RecursionLimitError(EvaluationError):
    """Evaluation nested deeper than the configured limit."""

    def __init__(self, limit: int, **kwargs: Any) -> None:
        super().__init__(
            message=f"Evaluation exceeded maximum depth of {limit}",
            code=ExprErrorCodes.RECURSION_LIMIT,
            **kwargs,
        )
        self.limit = limit


__all__: List[str] = [
    "ErrorSeverity",
    "ErrorPhase",
    "ErrorCategory",
    "ErrorCode",
    "ExprErrorCodes",
    "SourceSpan",
    "ErrorMessage",
    "TriggerExprError",
    "CompileError",
    "ReadError",
    "UnbalancedFormError",
    "UnterminatedStringError",
    "CatalogError",
    "EvaluationError",
    "UnboundSymbolError",
    "ArityError",
    "InteropError",
    "RecursionLimitError",
]
