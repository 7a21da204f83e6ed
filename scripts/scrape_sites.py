import json
import sys

from waterman.orchestrator import WatermanOrchestrator

# =============================================================================
# USAGE
# =============================================================================
# Run an ingestion + scoring pass from the command line:
#   python scripts/scrape_sites.py                # every site in SITES_FILE
#   python scripts/scrape_sites.py caparica guincho
# Same work as POST /api/scrape, without going through the web app.


def main(site_ids):
    orchestrator = WatermanOrchestrator.from_config()
    sites = orchestrator.store.list_sites()
    if not sites:
        print("No sites loaded - check SITES_FILE")
        return 1

    results = orchestrator.run_ingestion(site_ids=site_ids or None)

    print("\n" + "=" * 50)
    print("INGESTION RESULTS")
    print("=" * 50)
    for result in results:
        status = "OK  " if result.success else "FAIL"
        detail = f"{result.slot_count} slots" if result.success else result.error
        if result.success and result.is_complete is False:
            detail += f" (incomplete: {result.error})"
        print(f"[{status}] {result.site_name:<30} {detail}")
    print("=" * 50)

    print("\n--- Raw JSON ---")
    print(json.dumps([r.to_dict() for r in results], indent=2))

    return 0 if all(r.success for r in results) else 1


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
