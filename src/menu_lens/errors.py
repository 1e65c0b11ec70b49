"""Error taxonomy shared by providers, orchestration facades and surfaces.

Only ConfigurationError, ExhaustionError, ParseError and CancellationError
leave a facade. ProviderFailure and its subclasses drive fallback inside the
attempt runner.
"""

from __future__ import annotations

from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .domain.models import AttemptFailure


class MenuLensError(Exception):
    """Base class for every error raised by the package."""


class ConfigurationError(MenuLensError):
    """No usable provider, bad setting, or unknown provider id."""


class ProviderFailure(MenuLensError):
    """A single provider attempt failed; the runner moves on to the next one.

    ``retryable`` is recorded on the attempt outcome for callers that report
    failures; the runner advances the plan either way.
    """

    def __init__(self, provider: str, message: str, *, retryable: bool = True) -> None:
        super().__init__(message)
        self.provider = provider
        self.message = message
        self.retryable = retryable

    def __str__(self) -> str:
        return f"{self.provider}: {self.message}"


class ProviderTimeout(ProviderFailure):
    def __init__(self, provider: str, timeout_s: float) -> None:
        super().__init__(provider, f"timed out after {timeout_s:g}s")
        self.timeout_s = timeout_s


class ProviderUnavailable(ProviderFailure):
    """The provider could not be constructed (missing binary, SDK, or key)."""


class ExhaustionError(MenuLensError):
    """Every planned provider failed."""

    def __init__(self, family: str, failures: "List[AttemptFailure]") -> None:
        self.family = family
        self.failures = list(failures)
        last = self.failures[-1] if self.failures else None
        self.last_provider: Optional[str] = last.provider if last else None
        self.last_message: str = last.message if last else "no provider attempted"
        super().__init__(
            f"All {family} providers failed. Last error: {self.last_message}"
            + (f" (provider: {self.last_provider})" if self.last_provider else "")
        )


class ParseError(MenuLensError):
    """Model output could not be turned into a menu."""

    def __init__(self, message: str, raw_text: str = "") -> None:
        super().__init__(message)
        self.raw_text = raw_text


class CancellationError(MenuLensError):
    """The caller cancelled the request."""
