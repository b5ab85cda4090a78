#! /usr/bin/env python

"""utility methods"""

import re, os, io, uuid, logging, datetime, unicodedata
from PIL import Image, ImageOps

# set up logging
logger = logging.getLogger('acgallery')


def setup_custom_logger(name, service_name='app', log_dir=None):
    """Setup logger that writes to the console and, optionally, a shared file

    Args:
        name: Logger name (usually 'acgallery')
        service_name: Service identifier ('web' or 'cli') to tell processes apart
        log_dir: Directory for acgallery.log, console only when None
    """
    # Format: timestamp [SERVICE] LEVEL - module - message
    formatter = logging.Formatter(
        fmt=f'%(asctime)s [{service_name.upper()}] %(levelname)s - %(module)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)

    # Avoid duplicate handlers if called multiple times
    if logger.handlers:
        return logger

    # Console handler (for docker logs command)
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_dir:
        try:
            os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.FileHandler(os.path.join(log_dir, 'acgallery.log'))
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f'Could not setup file logging: {e}')

    return logger


def newId():
  """opaque identifier for rows and upload names"""
  return uuid.uuid4().hex


def slugify(name):
  """"Saut à la perche" -> "saut-a-la-perche" """
  ascii_name = unicodedata.normalize('NFKD', name).encode('ascii', 'ignore').decode('ascii')
  return re.sub(r'[^a-z0-9]+', '-', ascii_name.lower()).strip('-')


def parseDate(value):
  """parse 'YYYY-MM-DD' or an ISO-8601 datetime (trailing Z allowed)"""
  if isinstance(value, datetime.datetime):
    return value
  if not isinstance(value, str) or not value.strip():
    raise ValueError('date must be an ISO-8601 string')
  value = value.strip()
  if value.endswith('Z'):
    value = value[:-1] + '+00:00'
  parsed = datetime.datetime.fromisoformat(value)
  # stored naive, in UTC
  if parsed.tzinfo is not None:
    parsed = parsed.astimezone(datetime.timezone.utc).replace(tzinfo=None)
  return parsed


def genThumbnail(data, width, quality):
  """take original image bytes, return webp thumbnail bytes no wider than width"""
  img = Image.open(io.BytesIO(data))
  original_size = img.size
  img = ImageOps.exif_transpose(img)

  # webp keeps alpha, anything else goes to RGB
  if img.mode == 'P':
    img = img.convert('RGBA')
  elif img.mode not in ('RGB', 'RGBA'):
    img = img.convert('RGB')

  # never upscale
  if img.width > width:
    height = max(1, round(img.height * width / img.width))
    img = img.resize((width, height), Image.Resampling.LANCZOS)

  out = io.BytesIO()
  img.save(out, 'WEBP', quality=quality)
  logger.info('Thumbnail Generation SUCCESS: %s -> %s (%d bytes)',
              original_size, img.size, out.tell())
  return out.getvalue()
