#!/usr/bin/env python
# -*- coding:utf-8 -*-

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException

import util

# create the app
app = Flask(__name__)

# Load default config from config.py (values come from the environment)
app.config.from_object('config')

# Shared logger, Flask's own logger writes through the same handlers
logger = util.setup_custom_logger('acgallery', service_name='web',
                                  log_dir=app.config['LOG_DIR'])
app.logger.handlers = logger.handlers
app.logger.setLevel(logger.level)


@app.errorhandler(HTTPException)
def handle_http_exception(e):
  # API callers always get JSON, pages keep werkzeug's html
  if not request.path.startswith('/api/'):
    return e
  body = {'error': e.description}
  body.update(getattr(e, 'details', None) or {})
  return jsonify(body), e.code


# Log all unhandled exceptions
@app.errorhandler(Exception)
def handle_exception(e):
  app.logger.error(f'Unhandled exception: {str(e)}', exc_info=True)
  if request.path.startswith('/api/'):
    return jsonify({'error': 'Internal Server Error'}), 500
  return "Internal Server Error", 500
