# management/commands/expire_session_packs.py
from django.core.management.base import BaseCommand
from django.utils import timezone

from lessons.services import PackService


class Command(BaseCommand):
    help = 'Deactivate session packs whose expiry date has passed'

    def handle(self, *args, **options):
        now = timezone.now()
        expired = PackService.expire_packs(now)

        self.stdout.write(
            self.style.SUCCESS(f'Deactivated {expired} expired session packs')
        )
