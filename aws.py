#! /usr/bin/env python

"""blob store methods - boto3 against R2 (S3 compatible) with connection caching"""

# std libs
import logging

# third party
import boto3
from botocore.exceptions import BotoCoreError, ClientError

# our own libs
from errors import UpstreamError

# set up logging
logger = logging.getLogger('acgallery')

# Module-level S3 client cache (boto3 has built-in connection pooling)
_s3_client = None

# delete_objects accepts at most this many keys per call
DELETE_BATCH = 1000

def get_s3_client(config):
  """Get or create cached S3 client (boto3 handles connection pooling)"""
  global _s3_client
  if _s3_client is None:
    _s3_client = boto3.client(
      's3',
      endpoint_url=config['R2_ENDPOINT_URL'],
      aws_access_key_id=config['R2_ACCESS_KEY_ID'],
      aws_secret_access_key=config['R2_SECRET_ACCESS_KEY'],
      region_name='auto'
    )
    logger.debug('S3 client initialized')
  return _s3_client

def buildKey(yearNumber, competitionSlug, kind, filename):
  """storage key for an original or a thumbnail: photos/{year}/{slug}/{kind}/{filename}"""
  if kind not in ('originals', 'thumbnails'):
    raise ValueError('unknown key kind: %s' % kind)
  return 'photos/%s/%s/%s/%s' % (yearNumber, competitionSlug, kind, filename)

def yearPrefix(yearNumber):
  return 'photos/%s/' % yearNumber

def competitionPrefix(yearNumber, competitionSlug):
  return 'photos/%s/%s/' % (yearNumber, competitionSlug)

def getPublicUrl(config, S3Key):
  return '%s/%s' % (config['R2_PUBLIC_URL'], S3Key)

def keyFromUrl(config, url):
  """invert getPublicUrl, None when the url is not ours"""
  base = config['R2_PUBLIC_URL'] + '/'
  if not url or not url.startswith(base):
    return None
  return url[len(base):]

def generateUploadUrl(config, S3Key, contentType, expiry=3600):
  """
  Generate a presigned PUT URL so the client uploads straight to the bucket

  Args:
    config: App config with R2 credentials and bucket name
    S3Key: object key the client must write
    contentType: Content-Type the client must send with the PUT
    expiry: URL expiry in seconds (default: 3600 = 1 hour)

  Returns:
    Presigned URL string
  """
  bucket_name = config['R2_BUCKET_NAME']
  try:
    s3 = get_s3_client(config)
    return s3.generate_presigned_url(
      'put_object',
      Params={
        'Bucket': bucket_name,
        'Key': S3Key,
        'ContentType': contentType
      },
      ExpiresIn=expiry
    )
  except (ClientError, BotoCoreError) as e:
    logger.error('S3 Presign FAILED: %s - %s', S3Key, str(e))
    raise UpstreamError('Failed to generate upload URL')

def uploadBuffer(config, S3Key, data, contentType):
  """
  Upload bytes to the bucket

  Returns:
    Public URL of the stored object
  """
  bucket_name = config['R2_BUCKET_NAME']
  logger.info('S3 Upload Starting: %d bytes -> s3://%s/%s (Content-Type: %s)',
              len(data), bucket_name, S3Key, contentType)
  try:
    s3 = get_s3_client(config)
    s3.put_object(Bucket=bucket_name, Key=S3Key, Body=data, ContentType=contentType)
  except (ClientError, BotoCoreError) as e:
    logger.error('S3 Upload FAILED: %s - %s', S3Key, str(e))
    raise UpstreamError('Failed to store %s' % S3Key)
  logger.info('S3 Upload SUCCESS: s3://%s/%s', bucket_name, S3Key)
  return getPublicUrl(config, S3Key)

def deleteFromS3(config, S3Key):
  """Delete a single object, a missing object is not an error"""
  bucket_name = config['R2_BUCKET_NAME']
  logger.info('Deleting from S3: %s', S3Key)
  try:
    s3 = get_s3_client(config)
    # Remove leading slash if present (boto3 doesn't want it)
    s3.delete_object(Bucket=bucket_name, Key=S3Key.lstrip('/'))
  except (ClientError, BotoCoreError) as e:
    logger.error('S3 Delete FAILED: %s - %s', S3Key, str(e))
    raise UpstreamError('Failed to delete %s' % S3Key)
  logger.info('S3 Delete SUCCESS: %s', S3Key)

def listObjects(config, prefix):
  """yield every object dict (Key, LastModified, Size) under prefix"""
  bucket_name = config['R2_BUCKET_NAME']
  try:
    s3 = get_s3_client(config)
    paginator = s3.get_paginator('list_objects_v2')
    for page in paginator.paginate(Bucket=bucket_name, Prefix=prefix):
      for obj in page.get('Contents', []):
        yield obj
  except (ClientError, BotoCoreError) as e:
    logger.error('S3 List FAILED: %s - %s', prefix, str(e))
    raise UpstreamError('Failed to list %s' % prefix)

def deleteKeys(config, keys):
  """Delete keys in batches, returns how many were deleted"""
  bucket_name = config['R2_BUCKET_NAME']
  keys = list(keys)
  try:
    s3 = get_s3_client(config)
    for start in range(0, len(keys), DELETE_BATCH):
      batch = keys[start:start + DELETE_BATCH]
      result = s3.delete_objects(
        Bucket=bucket_name,
        Delete={'Objects': [{'Key': key} for key in batch], 'Quiet': True}
      )
      if result.get('Errors'):
        failed = [err.get('Key') for err in result['Errors']]
        logger.error('S3 Batch Delete FAILED for %d keys: %s', len(failed), failed[:10])
        raise UpstreamError('Failed to delete %d objects' % len(failed))
  except (ClientError, BotoCoreError) as e:
    logger.error('S3 Batch Delete FAILED: %s', str(e))
    raise UpstreamError('Failed to delete objects')
  return len(keys)

def deleteFolder(config, prefix, keep=()):
  """Delete every object under a folder prefix except the keys in keep, returns how many were deleted"""
  if not prefix.endswith('/'):
    raise ValueError('folder prefix must end with /: %s' % prefix)
  keep = set(keep)
  keys = [obj['Key'] for obj in listObjects(config, prefix) if obj['Key'] not in keep]
  if not keys:
    logger.info('S3 Folder Delete: nothing to delete under %s', prefix)
    return 0
  deleted = deleteKeys(config, keys)
  logger.info('S3 Folder Delete SUCCESS: %s (%d objects)', prefix, deleted)
  return deleted
