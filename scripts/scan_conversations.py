#!/usr/bin/env python3
"""
Conversation Scan Script

Runs one triage pass over HelpScout conversations from the command line.
Force reprocessing is only honoured together with --dry-run and --closed.

Usage:
    python scripts/scan_conversations.py [--dry-run] [--limit 20] [--closed] [--force]
    python scripts/scan_conversations.py --conversation-id 123456
"""

import sys
import json
import logging
import argparse
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def main():
    parser = argparse.ArgumentParser(description="Triage HelpScout conversations")
    parser.add_argument("--dry-run", action="store_true", help="Analyse without posting notes, tags or drafts")
    parser.add_argument("--limit", type=int, default=None, help="Maximum number of conversations to scan")
    parser.add_argument("--closed", action="store_true", help="Scan closed conversations instead of active/pending")
    parser.add_argument("--force", action="store_true", help="Re-analyse even without new customer messages")
    parser.add_argument("--conversation-id", type=int, default=None, help="Scan a single conversation")
    parser.add_argument("--scorer", choices=["lexical", "ai"], default=None, help="Override the configured scorer")
    parser.add_argument("--json", action="store_true", help="Print the full summary as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args()

    from dotenv import load_dotenv

    from triage.common.config import load_config
    from triage.common.errors import TransientUpstreamError
    from triage.analysis.pipeline import ScanOptions
    from triage.analysis.server import build_pipeline

    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    config = load_config()
    if args.scorer:
        config.scanner.scorer = args.scorer
    if not (config.helpscout.app_id and config.helpscout.app_secret):
        print("[Scan] ERROR: HELPSCOUT_APP_ID and HELPSCOUT_APP_SECRET must be set")
        sys.exit(1)

    pipeline = build_pipeline(config)
    options = ScanOptions(
        dry_run=args.dry_run,
        limit=args.limit,
        closed_only=args.closed,
        force_reprocess=args.force,
        conversation_id=args.conversation_id,
    )

    try:
        summary = pipeline.scan(options)
    except TransientUpstreamError as e:
        print(f"[Scan] ERROR: {e}")
        sys.exit(2)

    if args.json:
        print(json.dumps(summary.to_dict(), indent=2, default=str))
        return

    print(f"[Scan] Scanned: {summary.scanned}")
    print(f"[Scan] Notes added: {summary.notes_added}")
    print(f"[Scan] Tagged: {summary.tagged}")
    print(f"[Scan] Skipped (no new messages): {summary.skipped}")
    print(f"[Scan] Stable (no note): {summary.stable}")
    print(f"[Scan] Errors: {summary.errors}")
    if summary.ai_calls:
        print(f"[Scan] AI calls: {summary.ai_calls}, cost ${summary.cost:.4f}")

    for label, reports in (("Angry", summary.angry), ("Urgent", summary.urgent), ("Spam", summary.spam)):
        if not reports:
            continue
        print(f"\n[Scan] {label}:")
        for r in reports:
            print(f"  #{r.conversation_id} A{r.anger_score} U{r.urgency_score} {r.subject[:60]}")


if __name__ == "__main__":
    main()
