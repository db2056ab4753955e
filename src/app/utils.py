from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import HTTPException

from src.leakfinder.errors import InvalidTransition, NotFound, PremiumRequired, QuotaExceeded
from src.leakfinder.scan.csv_io import InputError


log = logging.getLogger(__name__)


@contextmanager
def http_errors() -> Iterator[None]:
    """Maps domain errors raised by the service layer onto HTTP status codes."""
    try:
        yield
    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except (QuotaExceeded, PremiumRequired) as e:
        raise HTTPException(status_code=402, detail=str(e)) from e
    except InvalidTransition as e:
        log.info("Rejected transition: %s", e)
        raise HTTPException(status_code=409, detail=str(e)) from e
