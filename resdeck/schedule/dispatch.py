"""Keyword dispatch and the error classification boundary.

:meth:`KeywordDispatcher.dispatch` is the only place where exceptions raised
by handlers are intercepted.  Instead of propagating them it returns a
:class:`DispatchResult` tagged with one of four outcomes; callers that want
exceptions call :meth:`DispatchResult.raise_for_error`.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from ..deck.record import Location, keyword_summary
from ..errors import InputError, LogicError
from .context import HandlerContext
from .domains import DEFAULT_DOMAINS, DomainDispatcher, Handler
from .handlers import HANDLERS

logger = logging.getLogger(__name__)

# Violated engine invariants; reported with an "Internal error:" marker.
INTERNAL_ERRORS = (LogicError, IndexError, KeyError, AssertionError)


class Outcome(enum.Enum):
    HANDLED = "handled"
    UNRECOGNIZED = "unrecognized"
    INPUT_ERROR = "input_error"
    INTERNAL_ERROR = "internal_error"


@dataclass(frozen=True)
class DispatchResult:
    outcome: Outcome
    keyword: str
    location: Location
    handler: Optional[str] = None
    error: Optional[InputError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def handled(self) -> bool:
        return self.outcome is Outcome.HANDLED

    @property
    def cause(self) -> Optional[BaseException]:
        return self.error.__cause__ if self.error is not None else None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


class KeywordDispatcher:
    """Route a keyword to exactly one handler.

    Domain dispatchers are asked first, in their fixed priority order; the
    flat handler table is consulted only when no domain claims the keyword.

    Parameters
    ----------
    domains:
        Domain dispatchers in priority order.
    handlers:
        Flat keyword name to handler table.
    """

    def __init__(
        self,
        domains: Sequence[DomainDispatcher] = DEFAULT_DOMAINS,
        handlers: Mapping[str, Handler] = HANDLERS,
    ) -> None:
        self.domains = tuple(domains)
        self.handlers = handlers

    def knows(self, keyword_name: str) -> bool:
        return keyword_name in self.handlers or any(keyword_name in d for d in self.domains)

    def dispatch(self, ctx: HandlerContext) -> DispatchResult:
        keyword = ctx.keyword
        location = keyword.location
        handler_name: Optional[str] = None
        try:
            for domain in self.domains:
                handler_name = domain.name
                if domain.handle(ctx):
                    break
            else:
                handler = self.handlers.get(keyword.name)
                if handler is None:
                    return DispatchResult(Outcome.UNRECOGNIZED, keyword.name, location)
                handler_name = handler.__name__
                handler(ctx)
        except InputError as exc:
            error = exc if exc.location is not None else _wrap(exc.reason, location, exc)
            logger.error(str(error))
            return DispatchResult(Outcome.INPUT_ERROR, keyword.name, location, handler_name, error)
        except INTERNAL_ERRORS as exc:
            error = _wrap(f"Internal error: {exc}", location, exc)
            logger.error(str(error))
            return DispatchResult(Outcome.INTERNAL_ERROR, keyword.name, location, handler_name, error)
        except Exception as exc:
            error = _wrap(str(exc), location, exc)
            logger.error(str(error))
            return DispatchResult(Outcome.INPUT_ERROR, keyword.name, location, handler_name, error)
        logger.debug("Handled %s", keyword_summary(keyword))
        return DispatchResult(Outcome.HANDLED, keyword.name, location, handler_name)


def _wrap(message: str, location: Location, cause: BaseException) -> InputError:
    error = InputError(message, location)
    error.__cause__ = cause
    return error
