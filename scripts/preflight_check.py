#!/usr/bin/env python3
import sys
import os

print("Running preflight import check...")
try:
    # Set dummy env vars to avoid KeyErrors during config load if any
    os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

    import directdebit.main
    print("Import directdebit.main: OK")

    import directdebit.queue.jobs
    print("Import directdebit.queue.jobs: OK")

    from directdebit.core.fixed_width import LAYOUT, RECORD_LENGTH
    width = sum(f.width for f in LAYOUT)
    if width != RECORD_LENGTH:
        raise RuntimeError(f"export layout is {width} columns, expected {RECORD_LENGTH}")
    print(f"Export layout: {width} columns OK")

    print("Preflight check passed.")
    sys.exit(0)
except Exception as e:
    print(f"Preflight check FAILED: {e}")
    import traceback
    traceback.print_exc()
    sys.exit(1)
