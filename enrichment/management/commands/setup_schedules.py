"""
Management command to register recurring enrichment schedules.

Registers every cron-enabled shop. When no shop has a configuration
yet, the default shop (ENRICHMENT_DEFAULT_SHOP) is registered with
ENRICHMENT_DEFAULT_CRON.

Usage:
    python manage.py setup_schedules
"""

import logging

from django.conf import settings
from django.core.management.base import BaseCommand

from enrichment.models import StoreConfig
from enrichment.queue import register_schedule, remove_schedule

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Register schedules for all cron-enabled shops."""

    help = 'Register recurring enrichment schedules for cron-enabled shops'

    def handle(self, *args, **options):
        if not StoreConfig.objects.exists():
            self._register_default()
            return

        registered = 0
        for config in StoreConfig.objects.order_by('shop'):
            if not config.cron_enabled:
                remove_schedule(config.shop)
                continue
            try:
                schedule = register_schedule(config.shop, config.cron_schedule)
            except ValueError as e:
                self.stdout.write(self.style.ERROR(f'{config.shop}: {e}'))
                continue
            registered += 1
            self.stdout.write(f'{config.shop}: {config.cron_schedule} (next run {schedule.next_run_at:%Y-%m-%d %H:%M} UTC)')

        self.stdout.write(self.style.SUCCESS(f'Registered {registered} schedules'))

    def _register_default(self):
        shop = getattr(settings, 'ENRICHMENT_DEFAULT_SHOP', '')
        if not shop:
            self.stdout.write(self.style.WARNING('No shops configured and ENRICHMENT_DEFAULT_SHOP is not set'))
            return

        cron = getattr(settings, 'ENRICHMENT_DEFAULT_CRON', '0 2 * * *')
        schedule = register_schedule(shop, cron)
        self.stdout.write(self.style.SUCCESS(
            f'Registered default shop {shop}: {cron} (next run {schedule.next_run_at:%Y-%m-%d %H:%M} UTC)'
        ))
