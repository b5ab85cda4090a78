#! /usr/bin/env python

"""years, competitions, ordering and cover photos"""

import datetime, logging
from peewee import fn, JOIN, IntegrityError

import aws, util
from db import Year, Competition, Photo
from errors import NotFound, Conflict, ValidationError

# set up logging
logger = logging.getLogger('acgallery')

# PATCH allow-lists: wire name -> column
YEAR_FIELDS = {'year': 'year', 'coverPhotoId': 'cover_photo_id'}
COMPETITION_FIELDS = {
  'name': 'name',
  'date': 'date',
  'location': 'location',
  'description': 'description',
  'coverPhotoId': 'cover_photo_id',
  'order': 'order',
}


def fieldMask(body, allowed):
  """keep only the allowed keys present in a PATCH body, renamed to columns"""
  if not isinstance(body, dict):
    raise ValidationError('JSON object body required')
  return {column: body[name] for name, column in allowed.items() if name in body}

def isInteger(value):
  return isinstance(value, int) and not isinstance(value, bool)

def getYearOr404(year_id):
  try:
    return Year.get(Year.id == year_id)
  except Year.DoesNotExist:
    raise NotFound('Year not found')

def getCompetitionOr404(competition_id):
  try:
    return (Competition.select(Competition, Year)
            .join(Year)
            .where(Competition.id == competition_id)
            .get())
  except Competition.DoesNotExist:
    raise NotFound('Competition not found')


# covers

def orderedPhotos(competition_id):
  """photos of a competition in display order"""
  return (Photo.select()
          .where(Photo.competition == competition_id)
          .order_by(Photo.order, Photo.created_at))

def competitionCoverUrl(competition):
  """explicit cover if it still resolves, else the first photo by order, else None"""
  if competition.cover_photo_id:
    cover = Photo.get_or_none(Photo.id == competition.cover_photo_id)
    if cover:
      return cover.thumbnail_url
  first = orderedPhotos(competition.id).first()
  return first.thumbnail_url if first else None

def yearCoverUrl(year):
  """explicit cover if it still resolves, else the first photo of the first competition"""
  if year.cover_photo_id:
    cover = Photo.get_or_none(Photo.id == year.cover_photo_id)
    if cover:
      return cover.thumbnail_url
  first = (Photo.select(Photo.thumbnail_url)
           .join(Competition)
           .where(Competition.year == year.id)
           .order_by(Competition.order, Photo.order, Photo.created_at)
           .first())
  return first.thumbnail_url if first else None


# years

def listYears():
  """every year, newest first, with counts and resolved cover"""
  query = (Year.select(Year,
                       fn.COUNT(fn.DISTINCT(Competition.id)).alias('competition_count'),
                       fn.COUNT(Photo.id).alias('photo_count'))
           .join(Competition, JOIN.LEFT_OUTER, on=(Competition.year == Year.id))
           .join(Photo, JOIN.LEFT_OUTER, on=(Photo.competition == Competition.id))
           .group_by(Year)
           .order_by(Year.year.desc()))
  years = []
  for year in query:
    data = year.as_json()
    data['competitionCount'] = year.competition_count
    data['photoCount'] = year.photo_count
    data['coverUrl'] = yearCoverUrl(year)
    years.append(data)
  return years

def createYear(yearNumber):
  if not isInteger(yearNumber):
    raise ValidationError('Year is required and must be a number')
  try:
    year = Year.create(year=yearNumber)
  except IntegrityError:
    raise Conflict('Year already exists')
  logger.info('YEAR_CREATED id=%s year=%d', year.id, year.year)
  return year

def getOrCreateYear(yearNumber):
  year = Year.get_or_none(Year.year == yearNumber)
  if year is None:
    year = createYear(yearNumber)
  return year

def updateYear(year_id, body):
  year = getYearOr404(year_id)
  changes = fieldMask(body, YEAR_FIELDS)
  if 'year' in changes and not isInteger(changes['year']):
    raise ValidationError('year must be a number')
  if changes.get('cover_photo_id') is not None:
    belongs = (Photo.select()
               .join(Competition)
               .where(Photo.id == changes['cover_photo_id'], Competition.year == year.id)
               .exists())
    if not belongs:
      raise ValidationError('Cover photo must belong to this year')
  if changes:
    changes['updated_at'] = datetime.datetime.now()
    try:
      Year.update(changes).where(Year.id == year.id).execute()
    except IntegrityError:
      raise Conflict('Year already exists')
    logger.info('YEAR_UPDATED id=%s fields=%s', year.id, sorted(changes))
  return Year.get(Year.id == year.id)

def referencedKeys(config, photos):
  """storage keys still used by these photo rows"""
  keys = set()
  for photo in photos:
    for url in (photo.original_url, photo.thumbnail_url):
      key = aws.keyFromUrl(config, url)
      if key:
        keys.add(key)
  return keys

def deleteStrayBlobs(config, photos, prefix):
  """delete blobs of photos stored outside the folder prefix (renamed slug)"""
  keys = []
  for photo in photos:
    for url in (photo.original_url, photo.thumbnail_url):
      key = aws.keyFromUrl(config, url)
      if key and not key.startswith(prefix):
        keys.append(key)
  if keys:
    aws.deleteKeys(config, keys)
  return keys

def deleteYear(config, year_id):
  """delete a year, its competitions, photos and blobs"""
  year = getYearOr404(year_id)
  prefix = aws.yearPrefix(year.year)
  photos = list(Photo.select().join(Competition).where(Competition.year == year.id))

  # blobs first, then rows. A renamed year may still own blobs under this prefix
  others = (Photo.select(Photo.original_url, Photo.thumbnail_url)
            .join(Competition)
            .where(Competition.year != year.id))
  aws.deleteFolder(config, prefix, keep=referencedKeys(config, others))
  deleteStrayBlobs(config, photos, prefix)

  competition_ids = Competition.select(Competition.id).where(Competition.year == year.id)
  Photo.delete().where(Photo.competition.in_(competition_ids)).execute()
  Competition.delete().where(Competition.year == year.id).execute()
  Year.delete().where(Year.id == year.id).execute()
  logger.info('YEAR_DELETED id=%s year=%d photos=%d', year.id, year.year, len(photos))


# competitions

def listCompetitions(year_id=None):
  """competitions, latest date first, with photo count and resolved cover"""
  query = (Competition.select(Competition, fn.COUNT(Photo.id).alias('photo_count'))
           .join(Photo, JOIN.LEFT_OUTER, on=(Photo.competition == Competition.id))
           .group_by(Competition)
           .order_by(Competition.date.desc()))
  if year_id:
    query = query.where(Competition.year == year_id)
  competitions = []
  for competition in query:
    data = competition.as_json()
    data['photoCount'] = competition.photo_count
    data['coverUrl'] = competitionCoverUrl(competition)
    competitions.append(data)
  return competitions

def slugOrError(name):
  if not isinstance(name, str) or not name.strip():
    raise ValidationError('Name is required')
  slug = util.slugify(name)
  if not slug:
    raise ValidationError('Name must contain letters or digits')
  return slug

def dateOrError(value):
  try:
    return util.parseDate(value)
  except ValueError:
    raise ValidationError('date must be an ISO-8601 date')

def textOrError(value, field):
  """optional free text, blank becomes None"""
  if value is None:
    return None
  if not isinstance(value, str):
    raise ValidationError('%s must be a string' % field)
  return value.strip() or None

def createCompetition(body):
  """create a competition, creating its year on the fly when given a year number"""
  if not isinstance(body, dict):
    raise ValidationError('JSON object body required')
  name = body.get('name')
  date = body.get('date')
  year_id = body.get('yearId')
  year_number = body.get('year')
  if not name or not date or not (year_id or year_number):
    raise ValidationError('Name, date, and yearId are required')

  slug = slugOrError(name)
  date = dateOrError(date)
  location = textOrError(body.get('location'), 'location')
  description = textOrError(body.get('description'), 'description')
  if year_id:
    year = getYearOr404(year_id)
  elif isInteger(year_number):
    year = getOrCreateYear(year_number)
  else:
    raise ValidationError('year must be a number')

  try:
    competition = Competition.create(
      name=name.strip(),
      slug=slug,
      date=date,
      location=location,
      description=description,
      year=year.id)
  except IntegrityError:
    raise Conflict('A competition with this name already exists for this year')
  logger.info('COMPETITION_CREATED id=%s year=%d slug=%s', competition.id, year.year, slug)
  return competition

def getCompetition(competition_id):
  """competition with its year and ordered photos"""
  competition = getCompetitionOr404(competition_id)
  data = competition.as_json()
  data['year'] = competition.year.as_json()
  data['photos'] = [photo.as_json() for photo in orderedPhotos(competition.id)]
  data['coverUrl'] = competitionCoverUrl(competition)
  return data

def updateCompetition(competition_id, body):
  competition = getCompetitionOr404(competition_id)
  changes = fieldMask(body, COMPETITION_FIELDS)
  if 'name' in changes:
    changes['slug'] = slugOrError(changes['name'])
    changes['name'] = changes['name'].strip()
  if 'date' in changes:
    changes['date'] = dateOrError(changes['date'])
  for field in ('location', 'description'):
    if field in changes:
      changes[field] = textOrError(changes[field], field)
  if 'order' in changes and not isInteger(changes['order']):
    raise ValidationError('order must be a number')
  if changes.get('cover_photo_id') is not None:
    belongs = (Photo.select()
               .where(Photo.id == changes['cover_photo_id'],
                      Photo.competition == competition.id)
               .exists())
    if not belongs:
      raise ValidationError('Cover photo must belong to this competition')
  if changes:
    changes['updated_at'] = datetime.datetime.now()
    try:
      Competition.update(changes).where(Competition.id == competition.id).execute()
    except IntegrityError:
      raise Conflict('A competition with this name already exists for this year')
    logger.info('COMPETITION_UPDATED id=%s fields=%s', competition.id, sorted(changes))
  return Competition.get(Competition.id == competition.id)

def deleteCompetition(config, competition_id):
  """delete a competition, its photos and blobs"""
  competition = getCompetitionOr404(competition_id)
  prefix = aws.competitionPrefix(competition.year.year, competition.slug)
  photos = list(Photo.select().where(Photo.competition == competition.id))
  photo_ids = [photo.id for photo in photos]

  # a renamed competition may still own blobs under this prefix
  others = (Photo.select(Photo.original_url, Photo.thumbnail_url)
            .where(Photo.competition != competition.id))
  aws.deleteFolder(config, prefix, keep=referencedKeys(config, others))
  deleteStrayBlobs(config, photos, prefix)

  if photo_ids:
    (Year.update(cover_photo_id=None, updated_at=datetime.datetime.now())
     .where(Year.cover_photo_id.in_(photo_ids))
     .execute())
  Photo.delete().where(Photo.competition == competition.id).execute()
  Competition.delete().where(Competition.id == competition.id).execute()
  logger.info('COMPETITION_DELETED id=%s prefix=%s photos=%d', competition.id, prefix, len(photos))
