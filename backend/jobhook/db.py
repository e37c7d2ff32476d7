"""
Database client configuration.
Uses Supabase (PostgreSQL) as the audit log store.
"""

import os
from supabase import create_client, Client
from dotenv import load_dotenv

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY")

if not SUPABASE_URL or not SUPABASE_SERVICE_KEY:
    raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set in environment variables")

# Service-level client; audit writes happen outside any user session
supabase_admin: Client = create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)
