#! /usr/bin/env python

"""Authentication for the single admin: shared password, signed cookie token"""

import datetime
import hmac
import logging

import jwt
from flask import request, redirect, url_for, current_app

from errors import Unauthorized

logger = logging.getLogger('acgallery')

JWT_ALGORITHM = 'HS256'

# Requests that never change anything
READ_METHODS = ('GET', 'HEAD', 'OPTIONS')


def check_password(password, expected):
    """Plaintext comparison against the configured password (constant time)"""
    if not expected:
        logger.error('ADMIN_PASSWORD is not configured, refusing login')
        return False
    if not isinstance(password, str):
        return False
    return hmac.compare_digest(password.encode('utf-8'), expected.encode('utf-8'))


def create_token(secret, days):
    """Signed admin token expiring after `days`"""
    now = datetime.datetime.now(datetime.timezone.utc)
    payload = {
        'role': 'admin',
        'iat': now,
        'exp': now + datetime.timedelta(days=days),
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def verify_token(token, secret):
    """True for a correctly signed, unexpired admin token"""
    if not token or not secret:
        return False
    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return False
    return payload.get('role') == 'admin'


def is_authenticated():
    """Check the session cookie of the current request"""
    config = current_app.config
    token = request.cookies.get(config['AUTH_COOKIE_NAME'])
    return verify_token(token, config['JWT_SECRET'])


def set_session_cookie(response, token):
    config = current_app.config
    response.set_cookie(
        config['AUTH_COOKIE_NAME'], token,
        max_age=config['SESSION_DAYS'] * 24 * 60 * 60,
        httponly=True,
        secure=config['SESSION_COOKIE_SECURE'],
        samesite='Lax',
        path='/')
    return response


def clear_session_cookie(response):
    config = current_app.config
    response.set_cookie(
        config['AUTH_COOKIE_NAME'], '',
        max_age=0,
        httponly=True,
        secure=config['SESSION_COOKIE_SECURE'],
        samesite='Lax',
        path='/')
    return response


def gate_request():
    """
    before_request hook guarding admin pages and API writes.

    - /admin pages (except /admin/login) redirect anonymous visitors to the login page
    - non-read /api/ requests (except /api/auth) are rejected with 401
    """
    path = request.path

    if path.startswith('/admin') and request.endpoint != 'admin_login':
        if not is_authenticated():
            return redirect(url_for('admin_login'))

    if path.startswith('/api/') and request.method not in READ_METHODS:
        if path == '/api/auth':
            return None
        if not is_authenticated():
            logger.info('AUTH_REJECTED method=%s path=%s ip=%s', request.method, path, request.remote_addr)
            raise Unauthorized()

    return None
