#! /usr/bin/env python

import datetime
from peewee import *
from playhouse.db_url import connect

import util
from app import app


def connectDatabase(url):
  """open a peewee database from a URL, sqlite gets foreign key enforcement"""
  if url.startswith('sqlite'):
    return connect(url, pragmas={'foreign_keys': 1})
  return connect(url)

db = connectDatabase(app.config['DATABASE_URL'])


def isoformat(value):
  return value.isoformat() if value else None


class BaseModel(Model):
  id           = CharField(primary_key=True, default=util.newId)
  created_at   = DateTimeField(default=datetime.datetime.now)
  updated_at   = DateTimeField(default=datetime.datetime.now)

  class Meta:
    database = db


class Year(BaseModel):
  year           = IntegerField(unique=True)
  # non-owning pointer, cleared when the photo goes away
  cover_photo_id = CharField(null=True)

  class Meta:
    table_name = 'years'

  def as_json(self):
    return {
      'id': self.id,
      'year': self.year,
      'coverPhotoId': self.cover_photo_id,
      'createdAt': isoformat(self.created_at),
      'updatedAt': isoformat(self.updated_at),
    }


class Competition(BaseModel):
  name           = TextField(null=False)
  slug           = TextField(null=False)
  date           = DateTimeField(null=False)
  location       = TextField(null=True)
  description    = TextField(null=True)
  cover_photo_id = CharField(null=True)
  year           = ForeignKeyField(Year, backref='competitions', column_name='year_id',
                                   on_delete='CASCADE', index=True)
  order          = IntegerField(default=0)

  class Meta:
    table_name = 'competitions'
    indexes = (
      (('year', 'slug'), True),
    )

  def as_json(self):
    return {
      'id': self.id,
      'name': self.name,
      'slug': self.slug,
      'date': isoformat(self.date),
      'location': self.location,
      'description': self.description,
      'coverPhotoId': self.cover_photo_id,
      'yearId': self.year_id,
      'order': self.order,
      'createdAt': isoformat(self.created_at),
      'updatedAt': isoformat(self.updated_at),
    }


class Photo(BaseModel):
  filename       = TextField(null=False)
  original_url   = TextField(null=False)
  thumbnail_url  = TextField(null=False)
  width          = IntegerField(null=False)
  height         = IntegerField(null=False)
  size           = IntegerField(null=False)
  competition    = ForeignKeyField(Competition, backref='photos', column_name='competition_id',
                                   on_delete='CASCADE', index=True)
  order          = IntegerField(default=0)

  class Meta:
    table_name = 'photos'
    indexes = (
      (('competition', 'order'), False),
    )

  def as_json(self):
    return {
      'id': self.id,
      'filename': self.filename,
      'originalUrl': self.original_url,
      'thumbnailUrl': self.thumbnail_url,
      'width': self.width,
      'height': self.height,
      'size': self.size,
      'competitionId': self.competition_id,
      'order': self.order,
      'createdAt': isoformat(self.created_at),
      'updatedAt': isoformat(self.updated_at),
    }


MODELS = [Year, Competition, Photo]
