"""
Logging for codeverdict.

Every engine component logs through a child of the "codeverdict" logger:

  codeverdict
  |
  +- codeverdict.parsers
  +- codeverdict.reference
  +- codeverdict.evaluate
  ...

The library installs no output handlers; the command line tool in
codeverdict.evaluate configures them. Each component logger carries a
Counter filter instead, since most warnings here mean the engine ran in a
degraded mode (a missing parser backend, an unreadable reference document,
an unknown language tag) and callers may want to know that happened:

    logger.get('reference').count.warnings
"""

import logging

PREFIX = 'codeverdict.'


class Counter(logging.Filter):
    """Counts the warnings and errors passing through a logger."""

    def __init__(self):
        super().__init__()
        self.errors: int = 0
        self.warnings: int = 0

    def __bool__(self) -> bool:
        return bool(self.errors or self.warnings)

    def __str__(self) -> str:
        return f"{_plural(self.errors, 'error')}, {_plural(self.warnings, 'warning')}"

    def filter(self, record) -> bool:
        if record.levelno >= logging.ERROR:
            self.errors += 1
        elif record.levelno >= logging.WARNING:
            self.warnings += 1
        return True

    def reset(self) -> None:
        self.errors = self.warnings = 0


def _plural(n: int, noun: str) -> str:
    return f'{n} {noun}' if n == 1 else f'{n} {noun}s'


class ComponentLogger(logging.Logger):
    """
    Logger for one engine component, such as "codeverdict.reference".

    Obtain it through logger.get("reference"), never by instantiating it.
    """

    def __init__(self, name, *args, **kwargs):
        super().__init__(name, *args, **kwargs)
        self.count = Counter()
        self.addFilter(self.count)


def get(name: str) -> ComponentLogger:
    """The component logger called "codeverdict.<name>", created on first use."""
    previous = logging.getLoggerClass()
    logging.setLoggerClass(ComponentLogger)
    try:
        return logging.getLogger(PREFIX + name)
    finally:
        logging.setLoggerClass(previous)


def components() -> dict[str, ComponentLogger]:
    """All component loggers created so far, by component name."""
    return {
        name[len(PREFIX):]: log
        for name, log in sorted(logging.Logger.manager.loggerDict.items())
        if name.startswith(PREFIX) and isinstance(log, ComponentLogger)
    }


def summary() -> str:
    """One line naming every component that has logged warnings or errors.

    Empty when nothing has been reported.
    """
    return '; '.join(f'{name}: {log.count}' for name, log in components().items() if log.count)


def reset() -> None:
    for log in components().values():
        log.count.reset()


root = logging.getLogger('codeverdict')
root.addHandler(logging.NullHandler())
