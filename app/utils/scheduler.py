"""
Background scheduler for automated tasks.

Handles:
- Incentive recalculation for every active organization and program
  (daily at INCENTIVE_RECALC_HOUR UTC)
- Achievement progress sweep (daily, one hour after the recalculation)
"""
import os
import logging

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler = None
_flask_app = None  # Flask app reference for job context


def init_scheduler(app):
    """
    Initialize the background scheduler.

    Only runs in production or when ENABLE_SCHEDULER=true.
    Only the main gunicorn process should run the scheduler.
    """
    global _scheduler, _flask_app

    _flask_app = app

    if app.config.get('TESTING'):
        logger.info('[Scheduler] Disabled in testing mode')
        return

    if not (os.getenv('FLASK_ENV') == 'production' or app.config.get('ENABLE_SCHEDULER')):
        logger.info('[Scheduler] Disabled (set FLASK_ENV=production or ENABLE_SCHEDULER=true)')
        return

    # Prevent multiple scheduler instances across gunicorn workers
    if os.getenv('SCHEDULER_RUNNING') == 'true':
        logger.info('[Scheduler] Already running in another process')
        return

    from apscheduler.schedulers.background import BackgroundScheduler
    from apscheduler.triggers.cron import CronTrigger

    recalc_hour = app.config.get('INCENTIVE_RECALC_HOUR', 2)

    _scheduler = BackgroundScheduler(
        timezone='UTC',
        job_defaults={
            'coalesce': True,  # Combine missed runs
            'max_instances': 1,  # Prevent concurrent runs
            'misfire_grace_time': 3600  # 1 hour grace period
        }
    )

    _scheduler.add_job(
        run_incentive_recalculation,
        trigger=CronTrigger(hour=recalc_hour, minute=0),
        id='incentive_recalculation',
        name='Recalculate automated incentive standards',
        replace_existing=True
    )

    _scheduler.add_job(
        run_progress_sweep,
        trigger=CronTrigger(hour=(recalc_hour + 1) % 24, minute=0),
        id='progress_sweep',
        name='Recompute achievement progress',
        replace_existing=True
    )

    _scheduler.start()
    os.environ['SCHEDULER_RUNNING'] = 'true'

    logger.info('[Scheduler] Started with 2 scheduled jobs:')
    logger.info(f'  - Incentive recalculation: Daily at {recalc_hour}:00 UTC')
    logger.info(f'  - Progress sweep: Daily at {(recalc_hour + 1) % 24}:00 UTC')

    import atexit
    atexit.register(shutdown_scheduler)


def shutdown_scheduler():
    """Gracefully shutdown the scheduler."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info('[Scheduler] Shutdown complete')


def run_incentive_recalculation():
    """Run the batch calculator for every active organization x active program."""
    global _flask_app

    if not _flask_app:
        logger.error('[Scheduler] Flask app not initialized')
        return

    logger.info('[Scheduler] Starting incentive recalculation...')

    with _flask_app.app_context():
        from ..extensions import db
        from ..models.incentive import IncentiveProgram
        from ..models.organization import Organization
        from ..services.incentive_calculator import incentive_calculator

        programs = IncentiveProgram.query.filter_by(is_active=True).all()
        organizations = Organization.query.filter_by(is_active=True).all()

        processed = 0
        failed = 0
        for program in programs:
            for organization in organizations:
                try:
                    summary = incentive_calculator.calculate_all(organization.id, program.id)
                    processed += summary['processed']
                    failed += len(summary['errors'])
                except Exception as e:
                    db.session.rollback()
                    failed += 1
                    logger.error(
                        f'[Scheduler] Incentive recalculation failed for organization '
                        f'{organization.id} program {program.code}: {e}'
                    )

        logger.info(f'[Scheduler] Incentive recalculation complete: {processed} standards, {failed} failures')


def run_progress_sweep():
    """Recompute achievement progress for every active member."""
    global _flask_app

    if not _flask_app:
        logger.error('[Scheduler] Flask app not initialized')
        return

    logger.info('[Scheduler] Starting achievement progress sweep...')

    with _flask_app.app_context():
        from ..services.gamification_service import gamification_service

        try:
            result = gamification_service.sweep()
            logger.info(
                f"[Scheduler] Progress sweep complete: {result['processed']} members, "
                f"{result['awards_granted']} awards"
            )
        except Exception as e:
            logger.error(f'[Scheduler] Progress sweep failed: {e}')
