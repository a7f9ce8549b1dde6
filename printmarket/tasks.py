"""
Celery Background Tasks for PrintMarket
"""
import logging
from printmarket.celery_app import celery
from printmarket import create_app

logger = logging.getLogger(__name__)


def log_task(msg):
    """Helper function for task logging"""
    logger.info(f"[CELERY_TASK] {msg}")


@celery.task(bind=True, name='printmarket.tasks.settle_ended_auctions')
def settle_ended_auctions(self):
    """
    Scheduled task: settle every active auction whose end_time has passed

    Returns:
        dict with settlement summary
    """
    app = create_app()

    with app.app_context():
        from printmarket.helpers.settlement import settle_ended_auctions as settle

        summary = settle()
        if summary['processed']:
            sold = sum(1 for r in summary['results'] if r['status'] == 'sold')
            errors = sum(1 for r in summary['results'] if r['status'] == 'error')
            log_task(f"Settled {summary['processed']} auctions ({sold} sold, {errors} errors) task={self.request.id}")
        return summary


@celery.task(bind=True, name='printmarket.tasks.activate_scheduled_listings')
def activate_scheduled_listings(self):
    """Scheduled task: activate listings whose start_time has passed"""
    app = create_app()

    with app.app_context():
        from printmarket.helpers.settlement import activate_scheduled_listings as activate

        result = activate()
        if result['activated'] or result['errors']:
            log_task(f"Activated {len(result['activated'])} listings, {len(result['errors'])} errors")
        return result
