# auctions/tasks.py
import logging

from celery import shared_task

from auctions.lifecycle import sweep_due_items

logger = logging.getLogger(__name__)


@shared_task
def sweep_due_items_task():
    transitions = sweep_due_items()
    if transitions:
        logger.info("Auction sweep applied %s transitions", transitions)
    return transitions
