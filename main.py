"""Command line entrypoint: detect and catalog every item in one or more photos."""

import argparse
import json
from dataclasses import asdict

from wardrobe_app.app import WardrobeIngestApp


def main() -> None:
    parser = argparse.ArgumentParser(description="Catalog clothing items found in photos")
    parser.add_argument("owner_id", help="Owner of the catalog")
    parser.add_argument("image_urls", nargs="+", help="Publicly reachable photo URLs")
    args = parser.parse_args()

    app = WardrobeIngestApp()
    report = {
        url: [asdict(outcome) for outcome in app.ingest_photo(args.owner_id, url)]
        for url in args.image_urls
    }
    print(json.dumps(report, indent=2))


if __name__ == "__main__":
    main()
