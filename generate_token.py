#!/usr/bin/env python3
"""
Generate User Data Token Script
Encodes user data JSON into the URL segment of a configured addon
"""
import json
import sys

from stremio_addon.core.config import Options
from stremio_addon.utils.token import UserDataCodec


def main():
    print("Stremio addon - User data token generator")
    print("=" * 60)

    raw = input("\n1. Enter the user data as JSON: ").strip()
    try:
        json.loads(raw)
    except ValueError as e:
        print(f"Invalid JSON: {e}")
        sys.exit(1)

    base_url = input("2. Addon base URL (default: http://localhost:8080): ").strip()
    base_url = (base_url or "http://localhost:8080").rstrip("/")

    options = Options()
    codec = UserDataCodec(decoder=json.loads, base64=options.user_data_is_base64, encoder=str.encode)
    token = codec.encode(raw)

    print("\n" + "=" * 60)
    print(f"Encoding: {'URL-safe Base64' if codec.base64 else 'URL-escaped JSON'}")
    print(f"\nInstall URL:\n{base_url}/{token}/manifest.json\n")
    print("Installation Steps:")
    print("  1. Copy the URL above")
    print("  2. Open Stremio")
    print("  3. Go to Add-ons -> Install from URL")
    print("  4. Paste the URL and click Install")
    print("\n" + "=" * 60)


if __name__ == "__main__":
    main()
