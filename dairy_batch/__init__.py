"""
dairy_batch -- Scheduled automation for the dairy.

Runs the recurring jobs (daily delivery scheduling, evening auto-delivery,
monthly invoices, ledger sync, cattle status sweep, integrity checks)
through a uniform task interface, records every run in
``automation_job_runs`` and polls a cron-style schedule in-process.

Architecture:
    dairy_batch/ is a top-level package.  Nothing in dairy_kernel,
    dairy_engines or dairy_services imports from it.

Invariants:
    - A run's ``idempotency_key`` is UNIQUE; the same scheduled slot never
      runs twice.
    - All timestamps come from the injected Clock.
    - Schedule evaluation (``dairy_batch.domain.schedule``) is pure.
    - A task that raises marks its run ``failed``; it never takes the
      scheduler down.
"""
