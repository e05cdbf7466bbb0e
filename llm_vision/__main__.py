"""Command line entry point for the LLM Vision project."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

from pydantic import ValidationError

from . import AppConfig, SettingsStore, VisionAnalyzer
from .credentials import resolve_credentials
from .errors import VisionError
from .io.http import HttpTransport
from .models.base import BinaryAttachment, SourceKind, WorkItem
from .models.providers import DEFAULT_REGISTRY
from .services.catalog import ModelCatalog
from .utils.text import parse_header_pairs


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="LLM Vision")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--image", type=Path, help="Image file to analyse.")
    source.add_argument("--url", help="Public http(s) URL of the image to analyse.")
    source.add_argument("--base64", dest="base64_data", help="Base64-encoded image data.")
    parser.add_argument("--prompt", help="Override the configured prompt.")
    parser.add_argument("--model", help="Model identifier; overrides the configured model.")
    parser.add_argument("--config", type=Path, help="Settings file (YAML or JSON).")
    parser.add_argument("--credentials", type=Path, help="Credentials file (YAML or JSON).")
    parser.add_argument(
        "--header",
        action="append",
        default=[],
        metavar="NAME: VALUE",
        help="Additional request header; may be repeated.",
    )
    parser.add_argument(
        "--include-metadata",
        action="store_true",
        help="Include model, usage and finish reason in the output.",
    )
    parser.add_argument(
        "--list-providers",
        action="store_true",
        help="Print known providers and exit.",
    )
    parser.add_argument(
        "--list-models",
        action="store_true",
        help="Print models offered by the configured provider and exit.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.list_providers:
        _dump(DEFAULT_REGISTRY.options())
        return 0

    store = SettingsStore(path=args.config, credentials_path=args.credentials)
    credential_store = store.credential_store()

    if args.list_models:
        try:
            credentials = resolve_credentials(credential_store)
        except VisionError as exc:
            parser.exit(2, f"error: {exc}\n")
        with HttpTransport() as transport:
            options = ModelCatalog(credentials, transport, DEFAULT_REGISTRY).options()
        _dump([asdict(option) for option in options])
        return 0

    if args.image is None and args.url is None and args.base64_data is None:
        parser.error("one of --image, --url or --base64 is required.")

    config = store.load()
    updates: dict[str, object] = {"include_metadata": args.include_metadata or config.include_metadata}
    item = WorkItem()
    if args.image is not None:
        try:
            data = args.image.read_bytes()
        except OSError as exc:
            parser.exit(1, f"error: cannot read image {args.image}: {exc}\n")
        item.binary[config.binary_property_name] = BinaryAttachment(
            data=data, file_name=args.image.name
        )
        updates["image_source"] = SourceKind.BINARY
    elif args.url is not None:
        updates.update(image_source=SourceKind.URL, image_url=args.url)
    else:
        updates.update(image_source=SourceKind.BASE64, base64_data=args.base64_data)
    if args.prompt:
        updates["prompt"] = args.prompt
    if args.model:
        updates["manual_model_id"] = args.model
    try:
        if args.header:
            updates["custom_headers"] = {**config.custom_headers, **parse_header_pairs(args.header)}
        config = AppConfig.model_validate({**config.model_dump(), **updates})

        analyzer = VisionAnalyzer(config, credential_store)
        try:
            results = analyzer.analyze_items([item])
        finally:
            analyzer.transport.close()
    except (VisionError, ValidationError) as exc:
        parser.exit(1, f"error: {exc}\n")

    _dump([result.json for result in results])
    return 0


def _dump(payload: object) -> None:
    json.dump(payload, sys.stdout, indent=2)
    sys.stdout.write("\n")


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
