from django.core.management.base import BaseCommand, CommandError

from securelink.client import SecureApiClient
from securelink.exceptions import SecureChannelError

class Command(BaseCommand):
    help = "Exercise a running server: handshake, one encrypted call and one plain call."

    def add_arguments(self, parser):
        parser.add_argument('base_url', nargs='?', default='http://127.0.0.1:8000')
        parser.add_argument('--session-id', default=None)
        parser.add_argument('--endpoint', default='/api/secure/dummy-data',
                            help='Encrypted-policy endpoint to call')
        parser.add_argument('--plain-endpoint', default='/api/secure/test')

    def handle(self, *args, **options):
        client = SecureApiClient(options['base_url'], session_id=options['session_id'])
        endpoint = options['endpoint']
        if not client.policy.is_encrypted(endpoint):
            raise CommandError(f'{endpoint} is not marked encrypted in the endpoint policy')

        try:
            handshake = client.initialize()
            self.stdout.write(f"Session {handshake.session_id}: server key {handshake.server_public_key}, "
                              f"client key {handshake.client_party.public_key()}")
            result = client.post(endpoint, {'ping': True})
        except SecureChannelError as exc:
            raise CommandError(f'Secure call failed ({exc.code}): {exc}') from exc

        ok = isinstance(result, dict) and result.get('success') is True
        self.stdout.write(f"Encrypted {endpoint}: {'ok' if ok else result}")

        plain = client.get(options['plain_endpoint'])
        self.stdout.write(f"Plain {options['plain_endpoint']}: {plain}")

        if not ok:
            raise CommandError('Encrypted call did not return success')
        self.stdout.write(self.style.SUCCESS(f"Secure channel to {client.base_url} is working"))
