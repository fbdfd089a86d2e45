#!/usr/bin/env python3
"""Supabase database setup script for nugget-engine.

Outputs the SQL for the content table the SupabaseContentStore reads and
writes. Copy the output into the Supabase SQL Editor and run it.

Usage:
    # Print setup SQL to console
    python scripts/setup_supabase.py

    # Save setup SQL to a file
    python scripts/setup_supabase.py --output setup.sql

    # Print migration SQL for tables created before primary/supporting media
    python scripts/setup_supabase.py --type migration

    # Verify the table exists and is readable
    python scripts/setup_supabase.py --verify

Columns mirror the document fields. `media` is the first-generation single
media column; it is read, and cleared once a document is migrated.
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime

# =============================================================================
# SQL Schema Definitions
# =============================================================================

SCHEMA_SQL = """
-- =============================================================================
-- nugget-engine Content Schema for Supabase
-- =============================================================================
-- Generated: {generated_at}
--
-- Instructions:
-- 1. Open your Supabase project dashboard
-- 2. Go to SQL Editor
-- 3. Paste this entire script
-- 4. Click "Run" to execute
-- =============================================================================

CREATE EXTENSION IF NOT EXISTS "uuid-ossp";

-- =============================================================================
-- Table: {table}
-- =============================================================================

CREATE TABLE IF NOT EXISTS {table} (
    id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),

    -- Text
    title TEXT,
    title_source TEXT,
    content TEXT NOT NULL DEFAULT '',
    excerpt TEXT NOT NULL DEFAULT '',
    read_time INTEGER NOT NULL DEFAULT 1,

    -- Classification
    tags TEXT[] NOT NULL DEFAULT '{{}}',
    visibility TEXT NOT NULL DEFAULT 'public',
    card_type TEXT NOT NULL DEFAULT 'hybrid',

    -- Media
    primary_media JSONB,
    supporting_media JSONB NOT NULL DEFAULT '[]',
    image_urls TEXT[] NOT NULL DEFAULT '{{}}',
    media JSONB,

    -- Timestamps
    custom_created_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),

    CONSTRAINT {table}_tags_not_empty CHECK (cardinality(tags) > 0),
    CONSTRAINT {table}_visibility_valid CHECK (visibility IN ('public', 'private')),
    CONSTRAINT {table}_card_type_valid CHECK (card_type IN ('hybrid', 'media-only')),
    CONSTRAINT {table}_title_source_valid CHECK (title_source IS NULL OR title_source IN ('user', 'metadata'))
);

CREATE INDEX IF NOT EXISTS idx_{table}_tags ON {table} USING GIN (tags);
CREATE INDEX IF NOT EXISTS idx_{table}_created_at ON {table}(created_at DESC);

-- Keep updated_at current
CREATE OR REPLACE FUNCTION update_updated_at_column()
RETURNS TRIGGER AS $$
BEGIN
    NEW.updated_at = NOW();
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS update_{table}_updated_at ON {table};
CREATE TRIGGER update_{table}_updated_at
    BEFORE UPDATE ON {table}
    FOR EACH ROW
    EXECUTE FUNCTION update_updated_at_column();
"""


# =============================================================================
# Migration SQL
# =============================================================================

MIGRATION_SQL = """
-- =============================================================================
-- Migration Script: add primary/supporting media columns
-- =============================================================================
-- For tables that only have the legacy `media` and `image_urls` columns.
-- Existing rows keep their legacy values until their next edit.
-- =============================================================================

ALTER TABLE {table} ADD COLUMN IF NOT EXISTS primary_media JSONB;
ALTER TABLE {table} ADD COLUMN IF NOT EXISTS supporting_media JSONB NOT NULL DEFAULT '[]';
ALTER TABLE {table} ADD COLUMN IF NOT EXISTS card_type TEXT NOT NULL DEFAULT 'hybrid';
ALTER TABLE {table} ADD COLUMN IF NOT EXISTS title_source TEXT;
ALTER TABLE {table} ADD COLUMN IF NOT EXISTS custom_created_at TIMESTAMPTZ;
"""


# =============================================================================
# Verification
# =============================================================================

def verify_table() -> dict:
    """Check that the content table exists and is readable.

    Returns:
        Dictionary with verification results.
    """
    from nugget_engine.config.settings import get_settings
    from nugget_engine.core.exceptions import ConfigurationError
    from nugget_engine.storage.supabase_store import create_supabase_client

    settings = get_settings()
    table = settings.content_table

    try:
        client = create_supabase_client(settings)
    except ConfigurationError as e:
        return {'success': False, 'table': table, 'error': e.message}

    try:
        response = client.table(table).select('id').limit(1).execute()
    except Exception as e:
        error_str = str(e)
        missing = 'does not exist' in error_str.lower() or 'relation' in error_str.lower()
        return {
            'success': False,
            'table': table,
            'exists': not missing,
            'error': error_str[:100],
        }

    return {
        'success': True,
        'table': table,
        'exists': True,
        'row_count': len(response.data) if response.data else 0,
    }


def print_verification_results(results: dict) -> None:
    """Print verification results in a formatted way."""
    print("\n" + "=" * 70)
    print("Supabase Table Verification")
    print("=" * 70)

    status = "OK" if results.get('success') else "FAIL"
    icon = "[+]" if results.get('success') else "[-]"
    print(f"\n  {icon} {results.get('table')}: {status}")
    if results.get('error'):
        print(f"      Error: {results['error']}")
    if results.get('exists') is False:
        print("\nRun this script without --verify to get the SQL to create it.")

    print("\n" + "=" * 70)


# =============================================================================
# Main Functions
# =============================================================================

def get_sql(sql_type: str, table: str) -> str:
    if sql_type == 'migration':
        return MIGRATION_SQL.format(table=table)
    return SCHEMA_SQL.format(
        table=table,
        generated_at=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
    )


def main():
    """Main entry point for the setup script."""
    parser = argparse.ArgumentParser(
        description='Generate Supabase setup SQL for nugget-engine',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        '--output', '-o',
        type=str,
        help='Save SQL to file instead of printing',
    )
    parser.add_argument(
        '--type', '-t',
        type=str,
        choices=['setup', 'migration'],
        default='setup',
        help='Type of SQL to generate (default: setup)',
    )
    parser.add_argument(
        '--table',
        type=str,
        default='articles',
        help='Content table name (default: articles)',
    )
    parser.add_argument(
        '--verify', '-v',
        action='store_true',
        help='Verify that the content table exists in Supabase',
    )

    args = parser.parse_args()

    if args.verify:
        results = verify_table()
        print_verification_results(results)
        sys.exit(0 if results.get('success') else 1)

    sql = get_sql(args.type, args.table)
    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            f.write(sql)
        print(f"SQL saved to: {args.output}")
    else:
        print(sql)


if __name__ == '__main__':
    main()
