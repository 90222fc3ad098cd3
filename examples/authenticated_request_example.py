#!/usr/bin/env python3
"""
Example demonstrating TokenProvider and AuthenticatingHandler usage.

Loads client definitions from a YAML config, fetches a token for each
configured client, then calls a protected service. If the service answers
401 with a Bearer challenge, the handler refreshes and retries once.

Usage:
    python examples/authenticated_request_example.py config.yaml https://orders.example.com/v1/orders
"""

import asyncio
import sys
from pathlib import Path

from tokenrelay.auth import AuthenticatingHandler, TokenProvider
from tokenrelay.config import load_config
from tokenrelay.logging import setup_logging


async def main(config_path: Path, url: str) -> int:
    """Fetch tokens for the configured clients and call ``url``."""
    logger = setup_logging(name="tokenrelay-example", log_to_stdout=True)
    config = load_config(config_path, env_file=Path(".env"))

    async with TokenProvider.from_config(config) as provider:
        print("=" * 70)
        print("Configured clients")
        print("=" * 70)
        for client_id in provider.list_clients():
            token = await provider.get_token_for_client(client_id)
            status = "token cached" if token else "no token (see log)"
            print(f"  {client_id}: {status}")
            print(f"    {provider.get_cached_credential_info(client_id)}")
        print()

        async with AuthenticatingHandler(provider) as http:
            response = await http.get(url)
            async with response:
                print(f"GET {url} -> {response.status}")
                if response.status >= 400:
                    logger.warning("Request failed", extra={"http_status": response.status})
                    return 1
                body = await response.text()
                print(body[:500])

        print()
        print(f"Host routes: {provider.store.routes()}")
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print(__doc__)
        sys.exit(2)
    sys.exit(asyncio.run(main(Path(sys.argv[1]), sys.argv[2])))
