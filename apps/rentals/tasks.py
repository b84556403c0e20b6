"""Celery tasks for Rentals app."""
from celery import shared_task
from . import services


@shared_task
def sync_dumpster_statuses():
    """
    Run daily so rentals placed or picked up today flip the
    Available/Rented flag. Maintenance dumpsters are left alone.

    Returns count of changed dumpsters for logging.
    """
    count = services.sync_all_dumpster_statuses()
    return f"Synced {count} dumpster statuses"
