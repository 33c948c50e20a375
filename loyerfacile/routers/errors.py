# loyerfacile/routers/errors.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException

from ..domain.errors import CollaboratorError, LifecycleError

log = logging.getLogger("loyerfacile.api")


@contextmanager
def domain_errors() -> Iterator[None]:
    """Translate service exceptions into HTTP responses."""
    try:
        yield
    except HTTPException:
        raise
    except LifecycleError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e) or "not found")
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e) or "forbidden")
    except CollaboratorError as e:
        log.warning("collaborator failure: %s", e)
        raise HTTPException(status_code=502, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
