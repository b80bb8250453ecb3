from .demo import (  # noqa: F401
    bootstrap_session,
    fetch_catalogue,
    retire_writer,
    run_demo,
    seed_sample_data,
)

__all__ = [
    "bootstrap_session",
    "seed_sample_data",
    "fetch_catalogue",
    "retire_writer",
    "run_demo",
]
