# Supabase tables: profiles, auth.users
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in app/database/account_store.py
# Authentication is handled by Supabase Auth (auth.users table)

"""
Expected Supabase table structure:

profiles:
- id: uuid (primary key, references auth.users.id)
- email: text (not null) - synced from auth.users
- full_name: text (nullable)
- role: text (not null, default 'user') - 'user' | 'admin'
- avatar_url: text (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (default: now())

RLS is expected to allow a user to select, insert and update only the row
whose id equals auth.uid(). When the table is missing or the policy rejects
the read, the backend falls back to a profile built from the user_metadata
written at sign-up ({"full_name": ..., "role": ...}).
"""
