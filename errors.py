#! /usr/bin/env python

"""error types raised by the gallery and turned into JSON by app.py"""

from werkzeug.exceptions import HTTPException


class GalleryError(HTTPException):
  """HTTP error carrying optional extra fields for the JSON body"""

  def __init__(self, description=None, **details):
    super().__init__(description)
    self.details = details


class ValidationError(GalleryError):
  code = 400
  description = 'Invalid request'


class Unauthorized(GalleryError):
  code = 401
  description = 'Unauthorized'


class Forbidden(GalleryError):
  code = 403
  description = 'Forbidden'


class NotFound(GalleryError):
  code = 404
  description = 'Not found'


class Conflict(GalleryError):
  code = 409
  description = 'Conflict'


class UpstreamError(GalleryError):
  """blob store, image fetch or thumbnail failure"""
  code = 502
  description = 'Upstream failure'
