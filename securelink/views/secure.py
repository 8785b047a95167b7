"""
Handshake and demonstration endpoints mounted under ``/api/secure``.

``public-key`` starts a key agreement for the caller's ``session-id``;
``dummy-data`` is an encrypted-policy endpoint the front end uses to show
the channel working end to end; ``test`` is its plain counterpart.
"""
from __future__ import annotations

import logging

from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from securelink.conf import DEFAULT_SESSION_ID, SESSION_HEADER
from securelink.services.sessions import get_session_store

logger = logging.getLogger(__name__)

DEMO_PATIENTS = [
    {
        'id': 1,
        'name': 'John Doe',
        'age': 32,
        'condition': 'Hypertension',
        'lastVisit': '2024-12-01',
        'vitals': {'bloodPressure': '120/80', 'heartRate': 72, 'temperature': '98.6°F'},
    },
    {
        'id': 2,
        'name': 'Jane Smith',
        'age': 28,
        'condition': 'Diabetes Type 2',
        'lastVisit': '2024-11-28',
        'vitals': {'bloodPressure': '110/70', 'heartRate': 68, 'temperature': '97.8°F'},
    },
    {
        'id': 3,
        'name': 'Mike Johnson',
        'age': 45,
        'condition': 'Asthma',
        'lastVisit': '2024-12-03',
        'vitals': {'bloodPressure': '130/85', 'heartRate': 78, 'temperature': '98.2°F'},
    },
]

DEMO_STATS = {'totalPatients': 156, 'activeAppointments': 23, 'completedToday': 12, 'emergencyCases': 2}


@api_view(['GET'])
@permission_classes([AllowAny])
def public_key(request):
    """Return the server public value for the caller's session, creating the session if needed."""
    session_id = request.headers.get(SESSION_HEADER) or DEFAULT_SESSION_ID
    server_key = get_session_store().public_value_for(session_id)
    logger.info('Providing public key for session %s', session_id)
    return Response({'success': True, 'serverPublicKey': server_key, 'sessionId': session_id})


# ScopedRateThrottle reads throttle_scope from the view class
public_key.cls.throttle_scope = 'handshake'


@api_view(['POST'])
@permission_classes([AllowAny])
def dummy_data(request):
    channel = getattr(request, 'secure_channel', None)
    logger.info('Dummy data request received (encrypted=%s)', channel is not None)
    data = {
        'patients': DEMO_PATIENTS,
        'stats': DEMO_STATS,
        'timestamp': timezone.now().isoformat(),
        'message': 'Encrypted data successfully retrieved!',
        'encrypted': channel is not None,
        'echo': request.data if isinstance(request.data, dict) else {},
    }
    return Response({'success': True, 'data': data})


@api_view(['GET'])
@permission_classes([AllowAny])
def plain_test(request):
    return Response({
        'success': True,
        'message': 'Non-encrypted test endpoint working!',
        'timestamp': timezone.now().isoformat(),
    })
