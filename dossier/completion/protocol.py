"""CompletionProvider protocol for chat-completion backends."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from dossier.completion.models import CompletionRequest, CompletionResult


@typ.runtime_checkable
class CompletionProvider(typ.Protocol):
    """Protocol for a single chat-completion backend.

    Implementations perform exactly one attempt per call. Retries,
    backoff and fallback live in
    :class:`~dossier.completion.service.CompletionService`.

    Examples
    --------
    >>> from dossier.completion import CompletionProvider, MockCompletionProvider
    >>> isinstance(MockCompletionProvider(), CompletionProvider)
    True

    """

    @property
    def name(self) -> str:
        """Provider identifier recorded on results and errors."""
        ...

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        """Run one completion attempt.

        Raises
        ------
        CompletionError
            With ``retryable`` set according to the failure kind.

        """
        ...

    async def aclose(self) -> None:
        """Release any owned network resources."""
        ...
