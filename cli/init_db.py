#! /usr/bin/env python

# -*- coding: utf-8 -*-
"""Create the gallery tables (existing tables are left alone unless --drop)"""

import sys
import os
import argparse

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import app
from db import db, MODELS
import util

logger = util.setup_custom_logger('acgallery', service_name='cli',
                                  log_dir=app.config['LOG_DIR'])


def create_tables(database, models, drop=False):
  if drop:
    logger.info('Dropping tables %s', [model._meta.table_name for model in models])
    database.drop_tables(models, safe=True)
  for model in models:
    logger.info('Creating table for model %s', model.__name__)
  database.create_tables(models, safe=True)


def main(argv=None):
  """Main program"""
  parser = argparse.ArgumentParser(description='create the gallery tables')
  parser.add_argument('--drop', action='store_true', help='drop existing tables first (destroys data)')
  args = parser.parse_args(argv)
  with db.connection_context():
    create_tables(db, MODELS, drop=args.drop)
  return 0


# MAIN

if __name__ == "__main__":
  sys.exit(main())
