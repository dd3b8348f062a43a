#!/usr/bin/env python3
"""
Export the built-in extraction rule table to JSON.

The exported file can be edited and served with MEMOIR_RULES_FILE, e.g.:
    python scripts/export_rules.py rules.json && MEMOIR_RULES_FILE=rules.json uvicorn api:app

The file is reloaded after writing so a broken export fails immediately.
"""

import sys
import os
import logging

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rules import DEFAULT_RULE_SPECS, RULES_VERSION, dump_rules, load_rules

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [export_rules] %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


def main(path, version=RULES_VERSION):
    dump_rules(DEFAULT_RULE_SPECS, path, version)
    loaded_version, rules = load_rules(path)
    logger.info("Exported %d rules (version %s) to %s", len(rules), loaded_version, path)
    return {"path": path, "version": loaded_version, "rules": len(rules)}


if __name__ == "__main__":
    import argparse
    import json

    parser = argparse.ArgumentParser(description="Export the built-in extraction rules to JSON")
    parser.add_argument("output", nargs="?", default="rules.json", help="Output JSON file")
    parser.add_argument("--version", default=RULES_VERSION, help="Version string written to the file")
    args = parser.parse_args()

    print(json.dumps(main(args.output, args.version), indent=2))
