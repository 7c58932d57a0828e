#!/usr/bin/env python

import argparse
import logging
import os
import sys

from ansible_arm_pipeline.catalog import DEFAULT_CATALOG_PATH
from ansible_arm_pipeline.exceptions import CatalogError
from ansible_arm_pipeline.generator import DEFAULT_TEMPLATE_DIR, Generator

DEFAULT_OUTPUT_DIR = os.path.join(os.getcwd(), "outputs")


def main(argv=None):
    """
    Main function to parse command-line arguments and render the Ansible
    modules for every resource type in the catalog.
    """
    parser = argparse.ArgumentParser(
        prog="arm-pipeline-generate",
        description="Generates Ansible modules for resource-manager resource types.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--catalog",
        default=DEFAULT_CATALOG_PATH,
        help="Path to the resource-type catalog file.",
    )
    parser.add_argument(
        "--template-dir",
        default=DEFAULT_TEMPLATE_DIR,
        help="Directory with the Jinja2 module templates.",
    )
    parser.add_argument(
        "--output-dir",
        default=DEFAULT_OUTPUT_DIR,
        help="Directory to save the generated modules.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging."
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not os.path.exists(args.output_dir):
        os.makedirs(args.output_dir)

    try:
        generator = Generator.from_files(
            catalog_path=args.catalog, template_dir=args.template_dir
        )
    except CatalogError as e:
        print(f"\n{e}", file=sys.stderr)
        return 1

    generator.generate(output_dir=args.output_dir)
    print("\nGeneration complete.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
