"""Segments that manage the pipeline itself rather than its values."""

import logging
from typing import Annotated, Iterable, Iterator, Optional

from branchpipe.pipe import core
from branchpipe.util.config import configure_logger
from branchpipe.util.shortcircuit import ShortCircuit

logger = logging.getLogger(__name__)


class ConfigureLogger(core.AbstractSegment):
    """Configures loggers when the segment is created and passes every value through.

    Putting it at the head of a pipeline turns on logging for the stages that
    follow without touching the values, divergent ones included.

    Example:
        pipeline = ConfigureLogger("branchpipe.util.buffer:DEBUG") | scale() | total()

    Args:
        logger_levels: Logger levels in format 'logger:level,logger:level,...'
        logger_files: Logger files in format 'logger:file,logger:file,...'
    """

    def __init__(self,
                 logger_levels: Annotated[Optional[str], "Logger levels in format 'logger:level,logger:level,...'"] = None,
                 logger_files: Annotated[Optional[str], "Logger files in format 'logger:file,logger:file,...'"] = None):
        super().__init__(raw=True)
        self.settings = configure_logger(logger_levels, logger_files=logger_files)

    def transform(self, input_iter: Iterable[ShortCircuit]) -> Iterator[ShortCircuit]:
        yield from input_iter
