from django.core.management.base import BaseCommand, CommandError

from portal.services.backend import BackendClient


class Command(BaseCommand):
    help = "Check that the hospital backend answers on one of its health endpoints."

    def add_arguments(self, parser):
        parser.add_argument('--url', help='Backend base URL (defaults to BACKEND_API_URL)')

    def handle(self, *args, **options):
        client = BackendClient(options.get('url') or None)
        result = client.ping()
        if not result.connected:
            raise CommandError(f"Backend at {client.base_url} is unreachable: {result.error}")
        self.stdout.write(self.style.SUCCESS(
            f"Backend at {client.base_url} answered on {result.endpoint} in {result.response_time_ms} ms"
        ))
