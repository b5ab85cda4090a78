#! /usr/bin/env python

# -*- coding: utf-8 -*-
"""
  AC Gallery
  ~~~~~~~~~~

  Gymnastics competition photos, by year and competition.

  WSGI entry point: `gunicorn web:app`
"""

from flask import render_template, jsonify
from werkzeug.middleware.proxy_fix import ProxyFix

from app import app
from db import Year, Competition, Photo
import security
import api  # noqa: F401 registers the /api routes

# Configure Flask to work behind a reverse proxy (client ip in logs, https for cookies)
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

# Anonymous writes and admin pages are refused before any view runs
app.before_request(security.gate_request)


# Ensure database is connected for each request
@app.before_request
def before_request():
  """Connect to database before each request"""
  database = Photo._meta.database
  if database.is_closed():
    database.connect()

@app.teardown_request
def teardown_request(exception):
  """Close database after each request"""
  database = Photo._meta.database
  if not database.is_closed():
    database.close()


@app.route('/health')
def health():
  return jsonify({'status': 'ok'}), 200

@app.route('/admin/login')
def admin_login():
  """login form, posts the password to /api/auth"""
  return render_template('admin/login.html')

@app.route('/admin')
def admin_dashboard():
  stats = {
    'years': Year.select().count(),
    'competitions': Competition.select().count(),
    'photos': Photo.select().count(),
  }
  return render_template('admin/dashboard.html', stats=stats)


if __name__ == '__main__':
  app.run(port=5000)
