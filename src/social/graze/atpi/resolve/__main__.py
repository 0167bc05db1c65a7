from typing import List
import argparse
import aiohttp
import asyncio
import json
import logging

from social.graze.atpi.resolve.errors import AtpiError
from social.graze.atpi.resolve.resolver import ResolutionMode, create_resolver

logger = logging.getLogger(__name__)


async def realMain() -> None:
    parser = argparse.ArgumentParser(prog="resolve", description="Resolve AT-URLs")
    parser.add_argument("url", nargs="+", help="The at:// URL(s) to resolve.")
    parser.add_argument(
        "--mode",
        default=ResolutionMode.local.value,
        choices=[mode.value for mode in ResolutionMode],
        help="Resolve locally, through the remote ATPI service, or locally with remote fallback.",
    )
    parser.add_argument(
        "--plc-hostname",
        default="plc.directory",
        help="The PLC hostname to use for resolving did-method-plc DIDs.",
    )
    parser.add_argument(
        "--remote-base-url",
        default="https://atpi.at",
        help="Base URL of the remote ATPI service used in remote and auto modes.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Upper bound in seconds for resolving a single URL locally.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")

    args = vars(parser.parse_args())

    logging.basicConfig(level=logging.DEBUG if args.get("debug") else logging.WARNING)

    urls: List[str] = args.get("url", [])
    mode = ResolutionMode(args.get("mode"))

    async with aiohttp.ClientSession() as session:
        resolver = create_resolver(
            session,
            plc_hostname=args.get("plc_hostname"),
            remote_base_url=args.get("remote_base_url"),
            resolve_timeout=args.get("timeout"),
        )
        for url in urls:
            try:
                document = await resolver.resolve(url, mode)
                print(json.dumps(document, indent=2))
            except AtpiError as e:
                logger.error("Could not resolve %s: %s", url, e.reason)
            except Exception:
                logging.exception("Exception resolving url %s", url)


def main() -> None:
    asyncio.run(realMain())


if __name__ == "__main__":
    main()
