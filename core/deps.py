"""
Define functions/aliases for dependency injection
"""
from collections.abc import Generator
from typing import Annotated, TypeAlias
from sqlmodel import Session
from fastapi import Depends, Header

from core.config import get_settings
from core.db import get_engine

# Define db dependency
def get_db() -> Generator[Session, None, None]:
  with Session(get_engine()) as session:
    yield session

def get_writer_name(
  x_user_name: Annotated[str | None, Header()] = None
) -> str:
  """
  Identity stamped on records written by this request.
  Falls back to DEFAULT_WRITER_NAME when the header is absent or blank.
  """
  if x_user_name and x_user_name.strip():
    return x_user_name.strip()
  return get_settings().DEFAULT_WRITER_NAME

SessionDep: TypeAlias = Annotated[Session, Depends(get_db)]
WriterDep: TypeAlias = Annotated[str, Depends(get_writer_name)]
