from __future__ import annotations


class DomainError(Exception):
  """Base class for failures surfaced to the caller with a fixed status code."""

  status_code = 400

  def __init__(self, message: str) -> None:
    super().__init__(message)
    self.message = message


class NotFound(DomainError):
  status_code = 404


class Forbidden(DomainError):
  status_code = 403


class Conflict(DomainError):
  status_code = 409


class BadRequest(DomainError):
  status_code = 400
