#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Delete blobs that no photo references

Presigned uploads the client never confirmed stay in the bucket forever.
This lists everything under photos/, keeps what a photo row points at or
what is younger than --max-age-hours, and deletes the rest.

Usage:
  python cli/sweep_uploads.py --dry-run              # Preview only
  python cli/sweep_uploads.py --max-age-hours 48     # Only older orphans
"""

import sys
import os
import argparse
import datetime

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import app
from db import db
import aws
import process
import util

logger = util.setup_custom_logger('acgallery', service_name='cli',
                                  log_dir=app.config['LOG_DIR'])


def sweep(config, max_age_hours, dry_run=False):
    """Returns the orphaned keys (deleted unless dry_run)"""
    now = datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)
    cutoff = now - datetime.timedelta(hours=max_age_hours)
    orphans = process.findOrphanedKeys(config, cutoff)

    if dry_run:
        for key in orphans:
            print(f"  [DRY RUN] Would delete {key}")
        return orphans

    if orphans:
        aws.deleteKeys(config, orphans)
    logger.info('SWEEP_COMPLETE deleted=%d cutoff=%s', len(orphans), cutoff.isoformat())
    return orphans


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Delete uploaded blobs that no photo references'
    )
    parser.add_argument('--max-age-hours', type=float,
                        default=app.config['ORPHAN_MAX_AGE_HOURS'],
                        help='only sweep objects older than this (default: %(default)s)')
    parser.add_argument('--dry-run', action='store_true',
                        help='Show what would be done without making changes')
    args = parser.parse_args(argv)

    if args.max_age_hours * 3600 < app.config['PRESIGN_EXPIRY']:
        print("Error: --max-age-hours must outlive presigned URLs, uploads may still be in flight")
        return 1

    with db.connection_context():
        orphans = sweep(app.config, args.max_age_hours, dry_run=args.dry_run)

    print(f"{'Found' if args.dry_run else 'Deleted'} {len(orphans)} orphaned objects")
    return 0


if __name__ == '__main__':
    sys.exit(main())
