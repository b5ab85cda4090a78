#! /usr/bin/env python

"""upload pipeline and photo methods"""

import datetime, logging
from concurrent.futures import ThreadPoolExecutor

import requests
from PIL import Image
from werkzeug.utils import secure_filename

import aws, util
from db import Year, Competition, Photo
from errors import NotFound, ValidationError, UpstreamError
from gallery import getCompetitionOr404, isInteger

# set up logging
logger = logging.getLogger('acgallery')

THUMBNAIL_EXTENSION = 'webp'
THUMBNAIL_CONTENT_TYPE = 'image/webp'


def getPhotoOr404(photo_id):
  try:
    return Photo.get(Photo.id == photo_id)
  except Photo.DoesNotExist:
    raise NotFound('Photo not found')

def uniqueFilename(originalFilename):
  """prefix a fresh id so identical names uploaded together never collide"""
  name = secure_filename(originalFilename) or 'photo'
  return '%s_%s' % (util.newId(), name)

def thumbnailFilename(filename):
  return '%s.%s' % (filename, THUMBNAIL_EXTENSION)


# presign

def presignUploads(config, competition_id, files):
  """
  Presign phase: one presigned PUT per file

  Args:
    config: App config
    competition_id: target competition
    files: list of {filename, contentType}

  Returns:
    list of {presignedUrl, key, thumbnailKey, filename, originalFilename}
  """
  if not competition_id or not isinstance(files, list) or not files:
    raise ValidationError('competitionId and files array are required')
  for file in files:
    if not isinstance(file, dict) or not isinstance(file.get('filename'), str) \
       or not file['filename'].strip():
      raise ValidationError('each file needs a filename')
    if not str(file.get('contentType', '')).startswith('image/'):
      raise ValidationError('only image uploads are accepted: %s' % file['filename'])

  competition = getCompetitionOr404(competition_id)
  yearNumber = competition.year.year

  uploads = []
  for file in files:
    filename = uniqueFilename(file['filename'])
    key = aws.buildKey(yearNumber, competition.slug, 'originals', filename)
    thumbnailKey = aws.buildKey(yearNumber, competition.slug, 'thumbnails', thumbnailFilename(filename))
    presignedUrl = aws.generateUploadUrl(config, key, file['contentType'],
                                         expiry=config['PRESIGN_EXPIRY'])
    uploads.append({
      'presignedUrl': presignedUrl,
      'key': key,
      'thumbnailKey': thumbnailKey,
      'filename': filename,
      'originalFilename': file['filename'],
    })
  logger.info('UPLOAD_PRESIGNED competition_id=%s files=%d', competition.id, len(uploads))
  return uploads


# confirm

def readUploadedFile(entry, originalsPrefix):
  """validate one confirm entry, returns (key, width, height, size)"""
  if not isinstance(entry, dict):
    raise ValidationError('uploadedFiles entries must be objects')
  key = entry.get('key', entry.get('storageKey'))
  size = entry.get('size', entry.get('byteSize'))
  width, height = entry.get('width'), entry.get('height')
  if not isinstance(key, str) or not key.startswith(originalsPrefix):
    raise ValidationError('key does not belong to this competition: %s' % key)
  filename = key[len(originalsPrefix):]
  if not filename or '/' in filename:
    raise ValidationError('key does not belong to this competition: %s' % key)
  if not all(isInteger(value) and value >= 0 for value in (width, height, size)):
    raise ValidationError('width, height and size must be numbers: %s' % key)
  return key, width, height, size

def storeThumbnail(config, key, thumbnailKey):
  """fetch the original the client uploaded, store its thumbnail, return both URLs"""
  originalUrl = aws.getPublicUrl(config, key)
  try:
    response = requests.get(originalUrl, timeout=config['FETCH_TIMEOUT'])
    response.raise_for_status()
  except requests.RequestException as e:
    logger.error('ORIGINAL_FETCH_FAILED key=%s error=%s', key, str(e))
    raise UpstreamError('Failed to fetch %s' % key)
  try:
    thumbnail = util.genThumbnail(response.content, config['THUMBNAIL_WIDTH'],
                                  config['THUMBNAIL_QUALITY'])
  except (OSError, ValueError, Image.DecompressionBombError) as e:
    logger.error('THUMBNAIL_FAILED key=%s error=%s', key, str(e))
    raise UpstreamError('Failed to make a thumbnail for %s' % key)
  thumbnailUrl = aws.uploadBuffer(config, thumbnailKey, thumbnail, THUMBNAIL_CONTENT_TYPE)
  return originalUrl, thumbnailUrl

def confirmUploads(config, competition_id, uploadedFiles):
  """
  Confirm phase: thumbnail and persist what the client uploaded

  Photos are appended after the existing ones in submission order. The first
  photo of the batch becomes the cover when the competition has none. Not
  atomic: entries that succeeded stay when others fail, and the failure is
  raised afterwards with both lists.
  """
  if not competition_id or not isinstance(uploadedFiles, list):
    raise ValidationError('competitionId and uploadedFiles are required')

  competition = getCompetitionOr404(competition_id)
  yearNumber = competition.year.year
  originalsPrefix = aws.buildKey(yearNumber, competition.slug, 'originals', '')
  entries = [readUploadedFile(entry, originalsPrefix) for entry in uploadedFiles]
  if not entries:
    return []

  # read-then-write, concurrent confirms may overlap orders
  existingCount = Photo.select().where(Photo.competition == competition.id).count()

  def derive(entry):
    key = entry[0]
    filename = key.rsplit('/', 1)[-1]
    thumbnailKey = aws.buildKey(yearNumber, competition.slug, 'thumbnails', thumbnailFilename(filename))
    return storeThumbnail(config, key, thumbnailKey)

  logger.info('UPLOAD_CONFIRM_START competition_id=%s files=%d existing=%d',
              competition.id, len(entries), existingCount)
  with ThreadPoolExecutor(max_workers=config['UPLOAD_WORKERS']) as pool:
    futures = [pool.submit(derive, entry) for entry in entries]

  created = []
  failed = []
  for index, (entry, future) in enumerate(zip(entries, futures)):
    key, width, height, size = entry
    try:
      originalUrl, thumbnailUrl = future.result()
    except UpstreamError as e:
      failed.append({'key': key, 'error': e.description})
      continue
    photo = Photo.create(
      filename=key.rsplit('/', 1)[-1],
      original_url=originalUrl,
      thumbnail_url=thumbnailUrl,
      width=width,
      height=height,
      size=size,
      competition=competition.id,
      order=existingCount + index)
    logger.info('PHOTO_DB_INSERT photo_id=%s order=%d key=%s', photo.id, photo.order, key)
    created.append(photo)

  if created and not competition.cover_photo_id:
    (Competition.update(cover_photo_id=created[0].id, updated_at=datetime.datetime.now())
     .where(Competition.id == competition.id)
     .execute())
    logger.info('COVER_DEFAULTED competition_id=%s photo_id=%s', competition.id, created[0].id)

  if failed:
    logger.error('UPLOAD_CONFIRM_PARTIAL competition_id=%s created=%d failed=%d',
                 competition.id, len(created), len(failed))
    raise UpstreamError('Failed to confirm %d of %d photos' % (len(failed), len(entries)),
                        created=[photo.as_json() for photo in created], failed=failed)

  logger.info('UPLOAD_CONFIRM_COMPLETE competition_id=%s created=%d', competition.id, len(created))
  return created


# ordering

def reorderPhotos(items):
  """apply {id, order} pairs one by one, last write wins, returns (updated, missing)"""
  if not isinstance(items, list):
    raise ValidationError('items array is required with { id, order } objects')
  for item in items:
    if not isinstance(item, dict) or not isinstance(item.get('id'), str) \
       or not isInteger(item.get('order')):
      raise ValidationError('items array is required with { id, order } objects')

  updated = 0
  missing = []
  for item in items:
    count = (Photo.update(order=item['order'], updated_at=datetime.datetime.now())
             .where(Photo.id == item['id'])
             .execute())
    if count:
      updated += 1
    else:
      missing.append(item['id'])
  logger.info('PHOTOS_REORDERED updated=%d missing=%d', updated, len(missing))
  return updated, missing

def updatePhoto(photo_id, body):
  """only the order of a photo can change"""
  photo = getPhotoOr404(photo_id)
  if not isinstance(body, dict):
    raise ValidationError('JSON object body required')
  if 'order' in body:
    if not isInteger(body['order']):
      raise ValidationError('order must be a number')
    photo.order = body['order']
    photo.updated_at = datetime.datetime.now()
    photo.save()
  return photo


# deletion

def deletePhoto(config, photo_id):
  """delete both blobs, clear any cover pointing here, then the row"""
  photo = getPhotoOr404(photo_id)

  for url in (photo.original_url, photo.thumbnail_url):
    key = aws.keyFromUrl(config, url)
    if key:
      aws.deleteFromS3(config, key)
    else:
      logger.warning('PHOTO_DELETE foreign url left in place photo_id=%s url=%s', photo.id, url)

  now = datetime.datetime.now()
  Competition.update(cover_photo_id=None, updated_at=now).where(Competition.cover_photo_id == photo.id).execute()
  Year.update(cover_photo_id=None, updated_at=now).where(Year.cover_photo_id == photo.id).execute()
  Photo.delete().where(Photo.id == photo.id).execute()
  logger.info('PHOTO_DELETED photo_id=%s competition_id=%s', photo.id, photo.competition_id)

def deletePhotos(config, photo_ids):
  """bulk delete, each photo independent, returns (deleted, missing, failed)"""
  if not isinstance(photo_ids, list) or not all(isinstance(i, str) for i in photo_ids):
    raise ValidationError('ids array is required')
  deleted, missing, failed = [], [], []
  for photo_id in photo_ids:
    try:
      deletePhoto(config, photo_id)
    except NotFound:
      missing.append(photo_id)
    except UpstreamError as e:
      failed.append({'id': photo_id, 'error': e.description})
    else:
      deleted.append(photo_id)
  return deleted, missing, failed


# unconfirmed uploads

def findOrphanedKeys(config, olderThan):
  """keys under photos/ that no photo row references, last modified before olderThan"""
  referenced = set()
  for photo in Photo.select(Photo.original_url, Photo.thumbnail_url):
    referenced.add(aws.keyFromUrl(config, photo.original_url))
    referenced.add(aws.keyFromUrl(config, photo.thumbnail_url))

  orphans = []
  for obj in aws.listObjects(config, 'photos/'):
    modified = obj['LastModified']
    if modified.tzinfo is not None:
      modified = modified.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    if obj['Key'] not in referenced and modified < olderThan:
      orphans.append(obj['Key'])
  return orphans
