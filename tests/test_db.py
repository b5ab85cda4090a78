#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Unit tests for database models
"""

import unittest
import datetime
from peewee import IntegrityError

from db import Year, Competition, Photo, connectDatabase
from tests.base import GalleryTestCase


class TestDatabaseModels(GalleryTestCase):
    """Test database model creation and constraints"""

    def test_year_creation(self):
        """Test creating a year gets an opaque id and timestamps"""
        year = self.make_year(2024)
        self.assertIsInstance(year.id, str)
        self.assertEqual(len(year.id), 32)
        self.assertIsNone(year.cover_photo_id)
        self.assertIsInstance(year.created_at, datetime.datetime)

    def test_year_unique(self):
        """Test that the year number is unique"""
        self.make_year(2024)
        with self.assertRaises(IntegrityError):
            self.make_year(2024)

    def test_competition_slug_unique_per_year(self):
        """Test (year, slug) is unique but a slug can repeat across years"""
        year_2023 = self.make_year(2023)
        year_2024 = self.make_year(2024)
        self.make_competition(year_2024, name='Coupe Régionale')

        with self.assertRaises(IntegrityError):
            self.make_competition(year_2024, name='Coupe Régionale')

        other = self.make_competition(year_2023, name='Coupe Régionale')
        self.assertEqual(other.slug, 'coupe-regionale')

    def test_photo_defaults(self):
        """Test a photo defaults to order 0 and belongs to its competition"""
        competition = self.make_competition(self.make_year())
        photo = Photo.create(
            filename='abc_photo.jpg',
            original_url='https://photos.example.com/x.jpg',
            thumbnail_url='https://photos.example.com/x.jpg.webp',
            width=10, height=20, size=30,
            competition=competition.id)
        self.assertEqual(photo.order, 0)
        self.assertEqual(photo.competition_id, competition.id)

    def test_json_projection(self):
        """Test camelCase wire names"""
        year = self.make_year(2024)
        competition = self.make_competition(year, location='Lyon')
        photo = self.make_photo(competition, order=3)

        data = competition.as_json()
        self.assertEqual(data['yearId'], year.id)
        self.assertEqual(data['location'], 'Lyon')
        self.assertEqual(data['date'], '2024-03-15T00:00:00')
        self.assertIsNone(data['coverPhotoId'])

        data = photo.as_json()
        self.assertEqual(data['competitionId'], competition.id)
        self.assertEqual(data['order'], 3)
        self.assertTrue(data['thumbnailUrl'].endswith('.webp'))

        self.assertEqual(year.as_json()['year'], 2024)

    def test_cascade_on_year_delete(self):
        """Test foreign keys cascade when sqlite enforces them"""
        year = self.make_year()
        competition = self.make_competition(year)
        self.make_photo(competition)

        Year.delete().where(Year.id == year.id).execute()

        self.assertEqual(Competition.select().count(), 0)
        self.assertEqual(Photo.select().count(), 0)


class TestConnectDatabase(unittest.TestCase):
    """Test database URLs"""

    def test_sqlite_url_enforces_foreign_keys(self):
        database = connectDatabase('sqlite:///:memory:')
        try:
            self.assertEqual(database.foreign_keys, 1)
        finally:
            database.close()


if __name__ == '__main__':
    unittest.main()
