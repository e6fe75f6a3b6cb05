"""
Run the daily ERP export once (cron entry point). Exits non-zero on failure
so the scheduler retries; a retry re-exports the same unmarked records.
"""
import json
import sys

from directdebit.queue.jobs import run_export_job


def main() -> int:
    try:
        result = run_export_job()
    except Exception as e:
        print(json.dumps({"success": False, "error": str(e)[:500]}))
        return 1
    print(json.dumps(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
