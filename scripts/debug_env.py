#!/usr/bin/env python3
"""Debug how Decision Trail resolves its settings."""
import os
import sys
from pathlib import Path

src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from decision_trail.core.config import (  # noqa: E402
    ENV_ACCESS_TOKEN,
    ENV_ANON_KEY,
    ENV_LOG_LEVEL,
    ENV_SUPABASE_URL,
    load_config,
    load_env,
    mask_secret,
)

SECRET_VARS = {ENV_ANON_KEY, ENV_ACCESS_TOKEN}

print("=" * 60)
print("Decision Trail Environment Debug")
print("=" * 60)

print(f"\n1. Current directory: {Path.cwd()}")

env_file = load_env()
print(f"2. .env file used: {env_file or 'none'}")

print("\n3. Environment variables:")
for name in (ENV_SUPABASE_URL, ENV_ANON_KEY, ENV_ACCESS_TOKEN, ENV_LOG_LEVEL):
    value = os.getenv(name)
    shown = mask_secret(value) if name in SECRET_VARS else repr(value)
    print(f"   {name}: {shown}")

config = load_config(use_env_file=False)
print("\n4. Resolved configuration:")
print(f"   analysis url: {config.gateway.analysis_url or 'NOT SET'}")
print(f"   anon key:     {mask_secret(config.gateway.anon_key)}")
print(f"   access token: {mask_secret(config.access_token)}")
print(f"   log level:    {config.log_level}")

print("\n" + "=" * 60)
