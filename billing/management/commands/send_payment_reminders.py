# management/commands/send_payment_reminders.py
from django.core.management.base import BaseCommand

from billing.services import PaymentReminderService


class Command(BaseCommand):
    help = 'Queue in-app reminders for installments due soon or overdue'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days-ahead',
            type=int,
            default=None,
            help='Remind about installments due within this many days',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List the reminders without creating them',
        )

    def handle(self, *args, **options):
        if options['dry_run']:
            reminders = PaymentReminderService.upcoming_reminders(days_ahead=options['days_ahead'])
            for reminder in reminders:
                self.stdout.write(PaymentReminderService.build_message(reminder))
            self.stdout.write(self.style.SUCCESS(f'Found {len(reminders)} payment reminders'))
            return

        created = PaymentReminderService.create_reminders(days_ahead=options['days_ahead'])
        self.stdout.write(
            self.style.SUCCESS(f'Processed {len(created)} payment reminders')
        )
