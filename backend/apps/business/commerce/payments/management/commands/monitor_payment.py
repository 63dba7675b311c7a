"""
Watch a Sepay QR payment from the shell until it completes or expires.
"""

from django.core.management.base import BaseCommand, CommandError

from apps.base.core.system.exceptions import StoreBaseException
from apps.business.commerce.payments.monitor import PaymentMonitor, TERMINAL_STATES
from apps.business.commerce.payments.services import PaymentService


class Command(BaseCommand):
    help = 'Poll the payment status of an order until it completes, expires or is cancelled'

    def add_arguments(self, parser):
        parser.add_argument('order_number')
        parser.add_argument('--interval', type=float, default=None, help='Seconds between polls')

    def handle(self, *args, **options):
        order_number = options['order_number']

        try:
            initial = PaymentService.check_status(order_number)
        except StoreBaseException as e:
            raise CommandError(e.message)

        if initial['status'] in TERMINAL_STATES:
            self.stdout.write(f"{order_number}: {initial['status']}")
            return

        monitor = PaymentMonitor(
            order_number,
            status_fetcher=PaymentService.check_status,
            poll_interval=options['interval'],
            timeout=initial['seconds_left']
        )
        self.stdout.write(
            f"Watching {order_number}: {initial['status']}, {initial['seconds_left']}s left"
        )

        try:
            result = monitor.run()
        except KeyboardInterrupt:
            monitor.close()
            self.stdout.write(self.style.WARNING('Stopped'))
            return

        style = self.style.SUCCESS if result.state == 'completed' else self.style.WARNING
        self.stdout.write(style(f'{result.state} after {result.polls} checks'))
