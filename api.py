#! /usr/bin/env python

# -*- coding: utf-8 -*-
"""
  JSON API for the gallery admin and public pages.

  Writes are guarded by security.gate_request (registered in web.py).
"""

import logging

import requests
from flask import request, jsonify, Response
from werkzeug.utils import secure_filename

from app import app
import gallery
import process
import security
from errors import ValidationError, Unauthorized, Forbidden, NotFound, UpstreamError

logger = logging.getLogger('acgallery')


def jsonBody():
  """parsed JSON body or a 400"""
  data = request.get_json(silent=True)
  if data is None:
    raise ValidationError('JSON body required')
  return data


# auth

@app.route('/api/auth', methods=['POST'])
def apiLogin():
  data = request.get_json(silent=True)
  if not isinstance(data, dict):
    raise ValidationError('Invalid request')
  if not security.check_password(data.get('password'), app.config['ADMIN_PASSWORD']):
    logger.info('LOGIN_FAILED ip=%s', request.remote_addr)
    raise Unauthorized('Invalid password')
  token = security.create_token(app.config['JWT_SECRET'], app.config['SESSION_DAYS'])
  logger.info('LOGIN_OK ip=%s', request.remote_addr)
  return security.set_session_cookie(jsonify({'success': True}), token)

@app.route('/api/auth', methods=['DELETE'])
def apiLogout():
  return security.clear_session_cookie(jsonify({'success': True}))


# years

@app.route('/api/years', methods=['GET'])
def apiListYears():
  return jsonify(gallery.listYears())

@app.route('/api/years', methods=['POST'])
def apiCreateYear():
  data = jsonBody()
  year = gallery.createYear(data.get('year') if isinstance(data, dict) else None)
  return jsonify(year.as_json()), 201

@app.route('/api/years/<string:year_id>', methods=['PATCH'])
def apiUpdateYear(year_id):
  year = gallery.updateYear(year_id, jsonBody())
  return jsonify(year.as_json())

@app.route('/api/years/<string:year_id>', methods=['DELETE'])
def apiDeleteYear(year_id):
  gallery.deleteYear(app.config, year_id)
  return jsonify({'success': True})


# competitions

@app.route('/api/competitions', methods=['GET'])
def apiListCompetitions():
  return jsonify(gallery.listCompetitions(request.args.get('yearId')))

@app.route('/api/competitions', methods=['POST'])
def apiCreateCompetition():
  competition = gallery.createCompetition(jsonBody())
  return jsonify(competition.as_json()), 201

@app.route('/api/competitions/<string:competition_id>', methods=['GET'])
def apiGetCompetition(competition_id):
  return jsonify(gallery.getCompetition(competition_id))

@app.route('/api/competitions/<string:competition_id>', methods=['PATCH'])
def apiUpdateCompetition(competition_id):
  competition = gallery.updateCompetition(competition_id, jsonBody())
  return jsonify(competition.as_json())

@app.route('/api/competitions/<string:competition_id>', methods=['DELETE'])
def apiDeleteCompetition(competition_id):
  gallery.deleteCompetition(app.config, competition_id)
  return jsonify({'success': True})


# photos

@app.route('/api/photos/upload', methods=['POST'])
def apiPresignUploads():
  data = jsonBody()
  if not isinstance(data, dict):
    raise ValidationError('competitionId and files array are required')
  uploads = process.presignUploads(app.config, data.get('competitionId'), data.get('files'))
  return jsonify(uploads)

@app.route('/api/photos/confirm', methods=['POST'])
def apiConfirmUploads():
  data = jsonBody()
  if not isinstance(data, dict):
    raise ValidationError('competitionId and uploadedFiles are required')
  photos = process.confirmUploads(app.config, data.get('competitionId'), data.get('uploadedFiles'))
  return jsonify([photo.as_json() for photo in photos]), 201

@app.route('/api/photos/reorder', methods=['PATCH'])
def apiReorderPhotos():
  data = jsonBody()
  updated, missing = process.reorderPhotos(data.get('items') if isinstance(data, dict) else None)
  return jsonify({'success': True, 'updated': updated, 'missing': missing})

@app.route('/api/photos', methods=['DELETE'])
def apiDeletePhotos():
  data = jsonBody()
  deleted, missing, failed = process.deletePhotos(
    app.config, data.get('ids') if isinstance(data, dict) else None)
  response = {'success': not failed, 'deleted': deleted, 'missing': missing, 'failed': failed}
  return jsonify(response), (502 if failed else 200)

@app.route('/api/photos/download', methods=['GET'])
def apiDownloadPhoto():
  """proxy a blob as an attachment, only from our own bucket"""
  url = request.args.get('url')
  filename = secure_filename(request.args.get('filename') or '') or 'photo.jpg'
  if not url:
    raise ValidationError('Missing url')

  base = app.config['R2_PUBLIC_URL']
  if not base or not url.startswith(base + '/'):
    logger.warning('DOWNLOAD_REJECTED url=%s ip=%s', url, request.remote_addr)
    raise Forbidden('URL not allowed')

  try:
    upstream = requests.get(url, timeout=app.config['FETCH_TIMEOUT'])
  except requests.RequestException as e:
    logger.error('DOWNLOAD_FAILED url=%s error=%s', url, str(e))
    raise UpstreamError('Failed to fetch image')
  if not upstream.ok:
    raise NotFound('Image not found')

  response = Response(upstream.content,
                      content_type=upstream.headers.get('Content-Type') or 'image/jpeg')
  response.headers['Content-Disposition'] = 'attachment; filename="%s"' % filename
  response.headers['Cache-Control'] = 'private, max-age=3600'
  return response

@app.route('/api/photos/<string:photo_id>', methods=['GET'])
def apiGetPhoto(photo_id):
  photo = process.getPhotoOr404(photo_id)
  data = photo.as_json()
  data['competition'] = photo.competition.as_json()
  return jsonify(data)

@app.route('/api/photos/<string:photo_id>', methods=['PATCH'])
def apiUpdatePhoto(photo_id):
  photo = process.updatePhoto(photo_id, jsonBody())
  return jsonify(photo.as_json())

@app.route('/api/photos/<string:photo_id>', methods=['DELETE'])
def apiDeletePhoto(photo_id):
  process.deletePhoto(app.config, photo_id)
  return jsonify({'success': True})
