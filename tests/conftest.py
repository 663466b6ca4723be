"""
Shared pytest fixtures.
"""

import logging

import pytest


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo handlers installed by configure_logging so caplog keeps working."""
    yield
    logger = logging.getLogger("uhi_scheduling")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
