# Statement for enabling the development environment
import os
DEBUG = os.environ.get('FLASK_DEBUG', '0') == '1'

# Define the application directory
BASE_DIR = os.path.abspath(os.path.dirname(__file__))

# Define the database - sqlite locally, postgres in production
# (any playhouse.db_url URL works)
DATABASE_URL = os.environ.get('DATABASE_URL', 'sqlite:///gallery.db')

# R2 (S3 compatible) credentials
R2_ACCOUNT_ID = os.environ.get('R2_ACCOUNT_ID', '')
R2_ACCESS_KEY_ID = os.environ.get('R2_ACCESS_KEY_ID', '')
R2_SECRET_ACCESS_KEY = os.environ.get('R2_SECRET_ACCESS_KEY', '')
R2_BUCKET_NAME = os.environ.get('R2_BUCKET_NAME', '')
# Public base URL of the bucket, no trailing slash
R2_PUBLIC_URL = os.environ.get('R2_PUBLIC_URL', '').rstrip('/')
R2_ENDPOINT_URL = os.environ.get('R2_ENDPOINT_URL') or \
  ('https://%s.r2.cloudflarestorage.com' % R2_ACCOUNT_ID if R2_ACCOUNT_ID else None)

# Presigned PUT URLs expire after an hour
PRESIGN_EXPIRY = 3600

# Thumbnails: bounded width, never upscaled, webp
THUMBNAIL_WIDTH = 400
THUMBNAIL_QUALITY = 80

# Threads used to fetch originals and store thumbnails on confirm
UPLOAD_WORKERS = int(os.environ.get('UPLOAD_WORKERS', 4))
FETCH_TIMEOUT = 60

# Unconfirmed uploads older than this are swept by cli/sweep_uploads.py
ORPHAN_MAX_AGE_HOURS = 24

# Single shared admin password and the secret signing session tokens
ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD', '')
JWT_SECRET = os.environ.get('JWT_SECRET', '')
AUTH_COOKIE_NAME = 'acgallery_admin_token'
SESSION_DAYS = 7
SESSION_COOKIE_SECURE = os.environ.get('FLASK_ENV') == 'production'

# Secret key for signing flask cookies
SECRET_KEY = os.environ.get('SECRET_KEY', 'secret')

# Log to this directory as well as stderr when set
LOG_DIR = os.environ.get('LOG_DIR')
