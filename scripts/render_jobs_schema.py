#!/usr/bin/env python3
"""Emit deterministic DDL for the jobs table the feed reads and ingestion upserts."""

from __future__ import annotations

import argparse


def _quote_sql(value: str) -> str:
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


def render_sql(*, state: str, county: str, table: str = "jobs") -> str:
    state_value = _quote_sql(state)
    county_value = _quote_sql(county)

    return f"""-- Job feed schema
-- Safe to re-run; every statement is idempotent.

create extension if not exists pgcrypto;

create table if not exists {table} (
  id uuid primary key default gen_random_uuid(),
  source text not null check (source in ('external', 'internal')),
  external_id text not null,
  title text not null,
  company text not null,
  location text not null,
  description text not null,
  industry text,
  wage double precision,
  apply_link text,
  created_at_external timestamptz,
  state text not null default {state_value},
  county text not null default {county_value},
  is_active boolean not null default true,
  reviewed boolean not null default false,
  approved boolean not null default false,
  flagged_reasons text[] not null default '{{}}',
  created_at timestamptz not null default now(),
  updated_at timestamptz not null default now(),
  unique (source, external_id)
);

create index if not exists {table}_feed_idx
  on {table} (state, county, is_active, approved, (coalesce(created_at_external, created_at)) desc);

create index if not exists {table}_industry_idx on {table} (industry);
"""


def main() -> None:
    parser = argparse.ArgumentParser(description="Emit SQL that creates the job feed schema.")
    parser.add_argument("--state", default="NJ", help="Default state for stored listings")
    parser.add_argument("--county", default="Mercer", help="Default county for stored listings")
    parser.add_argument("--table", default="jobs", help="Table name")
    args = parser.parse_args()

    print(render_sql(state=args.state, county=args.county, table=args.table))


if __name__ == "__main__":
    main()
