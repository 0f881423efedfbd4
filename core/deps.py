"""
Define functions/aliases for dependency injection
"""
from collections.abc import Generator
from typing import Annotated, TypeAlias
from sqlmodel import Session
from fastapi import Depends, HTTPException, status

from core.db import DatabaseUnavailableError, session_scope
from core.logger import logger

# Define db dependency
def get_db() -> Generator[Session, None, None]:
  try:
    with session_scope() as session:
      yield session
  except DatabaseUnavailableError as e:
    logger.error("Database unavailable: %s", e)
    raise HTTPException(
      status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
      detail="Database unavailable"
    ) from e

SessionDep: TypeAlias = Annotated[Session, Depends(get_db)]
