from django.http import JsonResponse

from securelink.policy import get_policy_table
from securelink.services.keyagreement import DHParameters
from securelink.services.sessions import get_session_store

def healthz(request):
    try:
        store = get_session_store()
        store.purge_expired()
        params = DHParameters.from_settings()
        return JsonResponse({
            'ok': True,
            'sessions': len(store),
            'dhPrimeBits': params.prime.bit_length(),
            'encryptedEndpoints': get_policy_table().migration_status()['encrypted'],
        })
    except Exception as e:
        return JsonResponse({'ok': False, 'error': str(e)}, status=500)
