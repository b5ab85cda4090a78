#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Unit tests for years, competitions and cover resolution
"""

import unittest
import datetime
from unittest.mock import patch

import gallery
import process
from db import Year, Competition, Photo
from errors import Conflict, NotFound, ValidationError
from tests.base import GalleryTestCase, PUBLIC_URL


class TestYears(GalleryTestCase):
    """Test year creation, listing and updates"""

    def test_create_year(self):
        year = gallery.createYear(2024)
        self.assertEqual(Year.get(Year.id == year.id).year, 2024)

    def test_create_year_rejects_non_numbers(self):
        for value in (None, '2024', 2024.5, True):
            with self.assertRaises(ValidationError):
                gallery.createYear(value)

    def test_create_duplicate_year_conflicts(self):
        gallery.createYear(2024)
        with self.assertRaises(Conflict):
            gallery.createYear(2024)

    def test_list_years_newest_first_with_counts(self):
        """Test counts are not inflated by the photo join"""
        old = self.make_year(2022)
        new = self.make_year(2024)
        first = self.make_competition(new, name='Coupe A')
        second = self.make_competition(new, name='Coupe B')
        self.make_photo(first, order=0)
        self.make_photo(first, order=1)
        self.make_photo(second, order=0)

        years = gallery.listYears()

        self.assertEqual([y['year'] for y in years], [2024, 2022])
        self.assertEqual(years[0]['competitionCount'], 2)
        self.assertEqual(years[0]['photoCount'], 3)
        self.assertEqual(years[1]['id'], old.id)
        self.assertEqual(years[1]['competitionCount'], 0)
        self.assertEqual(years[1]['photoCount'], 0)
        self.assertIsNone(years[1]['coverUrl'])

    def test_year_cover_falls_back_to_first_competition(self):
        year = self.make_year(2024)
        later = self.make_competition(year, name='Coupe B', order=1)
        first = self.make_competition(year, name='Coupe A', order=0)
        self.make_photo(later, order=0)
        self.make_photo(first, order=1)
        expected = self.make_photo(first, order=0)

        self.assertEqual(gallery.yearCoverUrl(year), expected.thumbnail_url)

    def test_update_year_cover_must_belong_to_year(self):
        year = self.make_year(2024)
        other = self.make_year(2023)
        photo = self.make_photo(self.make_competition(other))

        with self.assertRaises(ValidationError):
            gallery.updateYear(year.id, {'coverPhotoId': photo.id})

        own = self.make_photo(self.make_competition(year))
        updated = gallery.updateYear(year.id, {'coverPhotoId': own.id})
        self.assertEqual(updated.cover_photo_id, own.id)
        self.assertEqual(gallery.yearCoverUrl(updated), own.thumbnail_url)

    def test_update_year_ignores_unknown_fields(self):
        year = self.make_year(2024)
        updated = gallery.updateYear(year.id, {'id': 'hijack', 'createdAt': 'x'})
        self.assertEqual(updated.id, year.id)
        self.assertEqual(updated.year, 2024)

    def test_update_year_number_conflict(self):
        self.make_year(2023)
        year = self.make_year(2024)
        with self.assertRaises(Conflict):
            gallery.updateYear(year.id, {'year': 2023})

    def test_update_missing_year(self):
        with self.assertRaises(NotFound):
            gallery.updateYear('missing', {'year': 2020})


class TestDeleteYear(GalleryTestCase):
    """Test that deleting a year removes rows and blobs"""

    @patch('aws.deleteKeys')
    @patch('aws.deleteFolder')
    def test_delete_year_cascades(self, mock_folder, mock_keys):
        year = self.make_year(2024)
        kept = self.make_year(2023)
        competition = self.make_competition(year)
        self.make_photo(competition, order=0)
        self.make_photo(competition, order=1)
        kept_photo = self.make_photo(self.make_competition(kept))

        gallery.deleteYear(self.config, year.id)

        mock_folder.assert_called_once_with(self.config, 'photos/2024/', keep={
            kept_photo.original_url[len(PUBLIC_URL) + 1:],
            kept_photo.thumbnail_url[len(PUBLIC_URL) + 1:],
        })
        mock_keys.assert_not_called()
        self.assertIsNone(Year.get_or_none(Year.id == year.id))
        self.assertEqual(Competition.select().where(Competition.year == year.id).count(), 0)
        self.assertEqual([p.id for p in Photo.select()], [kept_photo.id])

    @patch('aws.deleteKeys')
    @patch('aws.deleteFolder')
    def test_delete_year_removes_blobs_outside_its_folder(self, mock_folder, mock_keys):
        """Test blobs still stored under a previous year number are deleted too"""
        year = self.make_year(2024)
        competition = self.make_competition(year)
        photo = self.make_photo(competition)
        Photo.update(
            original_url=f'{PUBLIC_URL}/photos/2019/old/originals/a.jpg',
            thumbnail_url=f'{PUBLIC_URL}/photos/2019/old/thumbnails/a.jpg.webp',
        ).where(Photo.id == photo.id).execute()

        gallery.deleteYear(self.config, year.id)

        mock_keys.assert_called_once_with(self.config, [
            'photos/2019/old/originals/a.jpg',
            'photos/2019/old/thumbnails/a.jpg.webp',
        ])

    @patch('aws.deleteFolder')
    def test_delete_missing_year(self, mock_folder):
        with self.assertRaises(NotFound):
            gallery.deleteYear(self.config, 'missing')
        mock_folder.assert_not_called()


class TestCompetitions(GalleryTestCase):
    """Test competition creation, updates and listing"""

    def setUp(self):
        super().setUp()
        self.year = self.make_year(2024)

    def test_create_competition_derives_slug(self):
        competition = gallery.createCompetition({
            'name': '  Coupe Régionale Élite ',
            'date': '2024-05-12',
            'yearId': self.year.id,
            'location': 'Lyon',
        })
        self.assertEqual(competition.slug, 'coupe-regionale-elite')
        self.assertEqual(competition.name, 'Coupe Régionale Élite')
        self.assertEqual(competition.date, datetime.datetime(2024, 5, 12))
        self.assertEqual(competition.location, 'Lyon')
        self.assertIsNone(competition.description)

    def test_create_competition_with_year_number(self):
        """Test the year is created on the fly from its number"""
        competition = gallery.createCompetition({
            'name': 'Coupe', 'date': '2025-01-10T09:00:00Z', 'year': 2025})
        year = Year.get(Year.year == 2025)
        self.assertEqual(competition.year_id, year.id)

        again = gallery.createCompetition({
            'name': 'Finale', 'date': '2025-06-10', 'year': 2025})
        self.assertEqual(again.year_id, year.id)
        self.assertEqual(Year.select().where(Year.year == 2025).count(), 1)

    def test_create_competition_requires_fields(self):
        for body in ({}, {'name': 'Coupe', 'date': '2024-01-01'},
                     {'name': 'Coupe', 'yearId': self.year.id},
                     {'date': '2024-01-01', 'yearId': self.year.id}):
            with self.assertRaises(ValidationError):
                gallery.createCompetition(body)

    def test_create_competition_bad_date(self):
        with self.assertRaises(ValidationError):
            gallery.createCompetition({'name': 'Coupe', 'date': 'demain', 'yearId': self.year.id})

    def test_create_competition_unknown_year(self):
        with self.assertRaises(NotFound):
            gallery.createCompetition({'name': 'Coupe', 'date': '2024-01-01', 'yearId': 'missing'})

    def test_slug_conflict_only_within_year(self):
        body = {'name': 'Coupe de France', 'date': '2024-01-01', 'yearId': self.year.id}
        gallery.createCompetition(body)
        with self.assertRaises(Conflict):
            gallery.createCompetition(dict(body, name='Coupe  de  France!'))

        other = self.make_year(2023)
        competition = gallery.createCompetition(dict(body, yearId=other.id))
        self.assertEqual(competition.slug, 'coupe-de-france')

    def test_rename_updates_slug(self):
        competition = self.make_competition(self.year, name='Coupe')
        updated = gallery.updateCompetition(competition.id, {'name': 'Finale Nationale'})
        self.assertEqual(updated.slug, 'finale-nationale')

    def test_rename_into_existing_slug_conflicts(self):
        self.make_competition(self.year, name='Finale')
        competition = self.make_competition(self.year, name='Coupe')
        with self.assertRaises(Conflict):
            gallery.updateCompetition(competition.id, {'name': 'Finale'})

    def test_update_competition_cover_must_belong(self):
        competition = self.make_competition(self.year, name='Coupe')
        other = self.make_competition(self.year, name='Finale')
        foreign = self.make_photo(other)
        with self.assertRaises(ValidationError):
            gallery.updateCompetition(competition.id, {'coverPhotoId': foreign.id})

    def test_list_competitions_latest_first(self):
        other_year = self.make_year(2023)
        early = self.make_competition(self.year, name='Coupe', date=datetime.datetime(2024, 1, 5))
        late = self.make_competition(self.year, name='Finale', date=datetime.datetime(2024, 6, 1))
        self.make_competition(other_year, name='Ancienne')
        self.make_photo(late, order=0)

        competitions = gallery.listCompetitions(self.year.id)

        self.assertEqual([c['id'] for c in competitions], [late.id, early.id])
        self.assertEqual(competitions[0]['photoCount'], 1)
        self.assertEqual(competitions[1]['photoCount'], 0)
        self.assertEqual(len(gallery.listCompetitions()), 3)

    def test_get_competition_with_ordered_photos(self):
        competition = self.make_competition(self.year)
        second = self.make_photo(competition, order=1)
        first = self.make_photo(competition, order=0)

        data = gallery.getCompetition(competition.id)

        self.assertEqual(data['year']['year'], 2024)
        self.assertEqual([p['id'] for p in data['photos']], [first.id, second.id])
        self.assertEqual(data['coverUrl'], first.thumbnail_url)

    def test_get_missing_competition(self):
        with self.assertRaises(NotFound):
            gallery.getCompetition('missing')


class TestCoverFallback(GalleryTestCase):
    """Test that a cover survives the deletion of its photo"""

    @patch('process.aws.deleteFromS3')
    def test_cover_falls_back_after_delete(self, mock_delete):
        year = self.make_year(2024)
        competition = self.make_competition(year)
        p1 = self.make_photo(competition, order=0)
        self.make_photo(competition, order=1)
        p3 = self.make_photo(competition, order=2)

        gallery.updateCompetition(competition.id, {'coverPhotoId': p3.id})
        gallery.updateYear(year.id, {'coverPhotoId': p3.id})
        data = gallery.getCompetition(competition.id)
        self.assertEqual(data['coverUrl'], p3.thumbnail_url)

        process.deletePhoto(self.config, p3.id)

        data = gallery.getCompetition(competition.id)
        self.assertIsNone(data['coverPhotoId'])
        self.assertEqual(data['coverUrl'], p1.thumbnail_url)
        year = Year.get(Year.id == year.id)
        self.assertIsNone(year.cover_photo_id)
        self.assertEqual(gallery.yearCoverUrl(year), p1.thumbnail_url)

    def test_reorder_changes_fallback_cover(self):
        competition = self.make_competition(self.make_year())
        p1 = self.make_photo(competition, order=0)
        p2 = self.make_photo(competition, order=1)

        process.reorderPhotos([{'id': p2.id, 'order': 0}, {'id': p1.id, 'order': 1}])

        data = gallery.getCompetition(competition.id)
        self.assertEqual([p['id'] for p in data['photos']], [p2.id, p1.id])
        self.assertEqual(data['coverUrl'], p2.thumbnail_url)


class TestDeleteCompetition(GalleryTestCase):
    """Test that deleting a competition removes rows, blobs and covers"""

    @patch('aws.deleteKeys')
    @patch('aws.deleteFolder')
    def test_delete_competition(self, mock_folder, mock_keys):
        year = self.make_year(2024)
        competition = self.make_competition(year, name='Coupe')
        kept = self.make_competition(year, name='Finale')
        photo = self.make_photo(competition)
        kept_photo = self.make_photo(kept)
        Year.update(cover_photo_id=photo.id).where(Year.id == year.id).execute()

        gallery.deleteCompetition(self.config, competition.id)

        mock_folder.assert_called_once_with(self.config, 'photos/2024/coupe/', keep={
            'photos/2024/finale/originals/' + kept_photo.filename,
            'photos/2024/finale/thumbnails/' + kept_photo.filename + '.webp',
        })
        mock_keys.assert_not_called()
        self.assertIsNone(Competition.get_or_none(Competition.id == competition.id))
        self.assertEqual([p.id for p in Photo.select()], [kept_photo.id])
        self.assertIsNone(Year.get(Year.id == year.id).cover_photo_id)

    @patch('aws.deleteKeys')
    @patch('aws.deleteFolder')
    def test_delete_renamed_competition_removes_old_blobs(self, mock_folder, mock_keys):
        """Test blobs stored under the slug before a rename are deleted too"""
        year = self.make_year(2024)
        competition = self.make_competition(year, name='Coupe')
        photo = self.make_photo(competition, name='a.jpg')
        gallery.updateCompetition(competition.id, {'name': 'Finale'})

        gallery.deleteCompetition(self.config, competition.id)

        mock_folder.assert_called_once_with(self.config, 'photos/2024/finale/', keep=set())
        mock_keys.assert_called_once_with(self.config, [
            'photos/2024/coupe/originals/a.jpg',
            'photos/2024/coupe/thumbnails/a.jpg.webp',
        ])
        self.assertIsNone(Photo.get_or_none(Photo.id == photo.id))

class TestDeleteKeepsLiveBlobs(GalleryTestCase):
    """Test that a folder delete spares blobs other rows still point at"""

    def objects_under(self, keys):
        def list_objects(config, prefix):
            return [{'Key': key} for key in keys if key.startswith(prefix)]
        return list_objects

    @patch('aws.deleteKeys')
    @patch('aws.listObjects')
    def test_delete_competition_reusing_old_slug(self, mock_list, mock_keys):
        year = self.make_year(2024)
        renamed = self.make_competition(year, name='Coupe')
        self.make_photo(renamed, name='a.jpg')
        gallery.updateCompetition(renamed.id, {'name': 'Finale'})
        reused = self.make_competition(year, name='Coupe')
        self.make_photo(reused, name='b.jpg')
        mock_list.side_effect = self.objects_under([
            'photos/2024/coupe/originals/a.jpg',
            'photos/2024/coupe/thumbnails/a.jpg.webp',
            'photos/2024/coupe/originals/b.jpg',
            'photos/2024/coupe/thumbnails/b.jpg.webp',
            'photos/2024/coupe/originals/never-confirmed.jpg',
        ])

        gallery.deleteCompetition(self.config, reused.id)

        mock_keys.assert_called_once_with(self.config, [
            'photos/2024/coupe/originals/b.jpg',
            'photos/2024/coupe/thumbnails/b.jpg.webp',
            'photos/2024/coupe/originals/never-confirmed.jpg',
        ])
        self.assertEqual(Photo.select().where(Photo.competition == renamed.id).count(), 1)

    @patch('aws.deleteKeys')
    @patch('aws.listObjects')
    def test_delete_year_reusing_old_number(self, mock_list, mock_keys):
        moved = self.make_year(2024)
        self.make_photo(self.make_competition(moved, name='Coupe'), name='a.jpg')
        gallery.updateYear(moved.id, {'year': 2025})
        reused = self.make_year(2024)
        self.make_photo(self.make_competition(reused, name='Finale'), name='b.jpg')
        mock_list.side_effect = self.objects_under([
            'photos/2024/coupe/originals/a.jpg',
            'photos/2024/coupe/thumbnails/a.jpg.webp',
            'photos/2024/finale/originals/b.jpg',
            'photos/2024/finale/thumbnails/b.jpg.webp',
        ])

        gallery.deleteYear(self.config, reused.id)

        mock_keys.assert_called_once_with(self.config, [
            'photos/2024/finale/originals/b.jpg',
            'photos/2024/finale/thumbnails/b.jpg.webp',
        ])
        self.assertEqual(Photo.select().count(), 1)


class TestEmptyCompetitionCover(GalleryTestCase):
    """Test that a competition without photos has no cover"""

    def test_empty_competition_has_no_cover(self):
        competition = self.make_competition(self.make_year())

        self.assertIsNone(gallery.competitionCoverUrl(competition))
        self.assertIsNone(gallery.getCompetition(competition.id)['coverUrl'])
        self.assertIsNone(gallery.listCompetitions()[0]['coverUrl'])

    def test_dangling_cover_on_empty_competition(self):
        competition = self.make_competition(self.make_year(), cover_photo_id='deleted-photo')

        self.assertIsNone(gallery.competitionCoverUrl(competition))
        data = gallery.getCompetition(competition.id)
        self.assertEqual(data['coverPhotoId'], 'deleted-photo')
        self.assertIsNone(data['coverUrl'])
        self.assertIsNone(gallery.listCompetitions()[0]['coverUrl'])


class TestCompetitionText(GalleryTestCase):
    """Test location and description accept only text"""

    def setUp(self):
        super().setUp()
        self.year = self.make_year(2024)

    def test_create_rejects_non_text(self):
        for field, value in (('location', {'city': 'Lyon'}), ('description', ['a', 'b']),
                             ('location', 42)):
            body = {'name': 'Coupe', 'date': '2024-01-01', 'year': 2030, field: value}
            with self.assertRaises(ValidationError):
                gallery.createCompetition(body)
        self.assertEqual(Competition.select().count(), 0)
        self.assertIsNone(Year.get_or_none(Year.year == 2030))

    def test_update_rejects_non_text(self):
        competition = self.make_competition(self.year, location='Lyon')
        with self.assertRaises(ValidationError):
            gallery.updateCompetition(competition.id, {'location': {'city': 'Paris'}})
        self.assertEqual(Competition.get(Competition.id == competition.id).location, 'Lyon')

    def test_update_clears_text(self):
        competition = self.make_competition(self.year, location='Lyon', description='Finale')
        updated = gallery.updateCompetition(competition.id, {'location': None, 'description': '  '})
        self.assertIsNone(updated.location)
        self.assertIsNone(updated.description)


if __name__ == '__main__':
    unittest.main()
