"""
Sequential combinators: run commands one at a time until one succeeds (Or)
or one fails (And).
"""

from __future__ import annotations

import logging
from typing import Optional

from .command import Command
from .errors import CommandError, NoneSucceededError

logger = logging.getLogger(__name__)


def run_or(*commands: Command) -> Optional[CommandError]:
    for c in commands:
        err = c.run()
        if err is None:
            return None
        logger.debug(f"or: {err}; trying next")
    return NoneSucceededError()


def run_and(*commands: Command) -> Optional[CommandError]:
    for c in commands:
        err = c.run()
        if err is not None:
            logger.debug(f"and: stopping at {err}")
            return err
    return None
